"""
src/data/store.py
─────────────────
SQLite record store.

Provides:
  - initialize_db()             : Create tables + seed a demo farm on first run
  - insert_batch()              : Register a new batch
  - fetch_batch()               : Read one batch (None when absent)
  - persist_batch()             : Compare-and-swap write guarded by `version`
  - persist_report()            : Append a report to the ledger
  - record_submission()         : Batch write + report insert in one transaction
  - query_recent_reports()      : Newest reports of a batch
  - query_batch_reports()       : Whole ledger of a batch, oldest first
  - query_reports_since()       : All reports created after a timestamp
  - query_unresolved_reports()  : Pending reports, optionally by urgency
  - query_all_active_batches()  : Batches not yet Completed
  - sync_alerts() / sync_insights() : Keyed upsert of the latest scan
  - acknowledge_alert() / dismiss_alert() / dismiss_insight()

Every sqlite3 error is re-raised as PersistenceError.
Thread safety: uses check_same_thread=False + a module-level lock.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from config.alerts import MAX_ALERTS_DISPLAY
from config.settings import settings
from src.data.errors import ConcurrencyError, PersistenceError
from src.data.models import (
    Alert,
    Batch,
    BatchStatistics,
    Insight,
    Report,
    ReportStatus,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

_lock = threading.RLock()
_DB: sqlite3.Connection | None = None


# ── Connection ────────────────────────────────────────────────────────────────

def _get_conn() -> sqlite3.Connection:
    global _DB
    if _DB is None:
        _DB = sqlite3.connect(settings.DATABASE_URL, check_same_thread=False)
        _DB.row_factory = sqlite3.Row
    return _DB


@contextmanager
def _transaction() -> Iterator[sqlite3.Connection]:
    """Serialized transaction; commits on success, rolls back on any error."""
    conn = _get_conn()
    try:
        with _lock, conn:
            yield conn
    except (sqlite3.Error, OverflowError) as exc:
        raise PersistenceError(str(exc)) from exc


@contextmanager
def _reading() -> Iterator[sqlite3.Connection]:
    conn = _get_conn()
    try:
        with _lock:
            yield conn
    except (sqlite3.Error, OverflowError) as exc:
        raise PersistenceError(str(exc)) from exc


# ── Schema ────────────────────────────────────────────────────────────────────

_CREATE_BATCHES = """
CREATE TABLE IF NOT EXISTS batches (
    id                     TEXT PRIMARY KEY,
    name                   TEXT NOT NULL DEFAULT '',
    farmer_name            TEXT,
    bird_count             INTEGER NOT NULL,
    total_mortality        INTEGER NOT NULL DEFAULT 0,
    remaining_birds        INTEGER NOT NULL DEFAULT 0,
    mortality_rate         REAL NOT NULL DEFAULT 0.0,
    health_score           INTEGER NOT NULL DEFAULT 100,
    health_status          TEXT NOT NULL DEFAULT 'Excellent',
    feed_used              REAL NOT NULL DEFAULT 0.0,
    feed_efficiency        REAL NOT NULL DEFAULT 0.0,
    current_weight         REAL NOT NULL DEFAULT 0.0,
    vaccinations           INTEGER NOT NULL DEFAULT 0,
    temperature            REAL,
    humidity               REAL,
    status                 TEXT NOT NULL DEFAULT 'Active',
    start_date             TEXT NOT NULL,
    last_mortality_update  TEXT,
    last_health_check      TEXT,
    version                INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_REPORTS = """
CREATE TABLE IF NOT EXISTS reports (
    id              TEXT PRIMARY KEY,
    batch_id        TEXT NOT NULL,
    report_type     TEXT NOT NULL,
    fields          TEXT NOT NULL DEFAULT '{}',
    processed_data  TEXT NOT NULL DEFAULT '{}',
    urgency_level   TEXT NOT NULL DEFAULT 'normal',
    status          TEXT NOT NULL DEFAULT 'Pending',
    title           TEXT NOT NULL DEFAULT '',
    batch_updated   INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL
);
"""

_CREATE_ALERTS = """
CREATE TABLE IF NOT EXISTS alerts (
    key            TEXT PRIMARY KEY,
    rule_id        TEXT NOT NULL,
    batch_id       TEXT,
    batch_name     TEXT NOT NULL DEFAULT '',
    severity       TEXT NOT NULL,
    title          TEXT NOT NULL,
    message        TEXT NOT NULL,
    value          REAL,
    threshold      REAL,
    timestamp      TEXT NOT NULL,
    acknowledged   INTEGER NOT NULL DEFAULT 0,
    dismissed      INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_INSIGHTS = """
CREATE TABLE IF NOT EXISTS insights (
    key               TEXT PRIMARY KEY,
    rule_id           TEXT NOT NULL,
    insight_type      TEXT NOT NULL,
    category          TEXT NOT NULL,
    title             TEXT NOT NULL,
    description       TEXT NOT NULL,
    recommendation    TEXT NOT NULL,
    priority          TEXT NOT NULL,
    affected_batches  TEXT NOT NULL DEFAULT '[]',
    batch_id          TEXT,
    report_id         TEXT,
    actionable        INTEGER NOT NULL DEFAULT 1,
    timestamp         TEXT NOT NULL,
    dismissed         INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_STATISTICS = """
CREATE TABLE IF NOT EXISTS batch_statistics (
    batch_id     TEXT PRIMARY KEY,
    payload      TEXT NOT NULL,
    computed_at  TEXT NOT NULL
);
"""

_CREATE_IDX = """
CREATE INDEX IF NOT EXISTS idx_reports_batch_ts ON reports (batch_id, created_at);
CREATE INDEX IF NOT EXISTS idx_reports_ts       ON reports (created_at);
CREATE INDEX IF NOT EXISTS idx_batches_status   ON batches (status);
"""

_TABLES = ("batches", "reports", "alerts", "insights", "batch_statistics")

_BATCH_COLUMNS = (
    "id", "name", "farmer_name", "bird_count", "total_mortality", "remaining_birds",
    "mortality_rate", "health_score", "health_status", "feed_used", "feed_efficiency",
    "current_weight", "vaccinations", "temperature", "humidity", "status", "start_date",
    "last_mortality_update", "last_health_check", "version",
)


def _create_tables(conn: sqlite3.Connection) -> None:
    with conn:
        conn.executescript(
            _CREATE_BATCHES + _CREATE_REPORTS + _CREATE_ALERTS
            + _CREATE_INSIGHTS + _CREATE_STATISTICS + _CREATE_IDX
        )


# ── Row mapping ───────────────────────────────────────────────────────────────

def _batch_row(batch: Batch) -> dict:
    data = batch.model_dump(mode="json")
    return {col: data[col] for col in _BATCH_COLUMNS}


def _row_to_batch(row: sqlite3.Row) -> Batch:
    return Batch.model_validate(dict(row))


def _row_to_report(row: sqlite3.Row) -> Report:
    data = dict(row)
    data["fields"] = json.loads(data["fields"])
    data["processed_data"] = json.loads(data["processed_data"])
    data["batch_updated"] = bool(data["batch_updated"])
    return Report.model_validate(data)


def _report_params(report: Report) -> tuple:
    return (
        report.id,
        report.batch_id,
        report.report_type.value,
        json.dumps(report.fields, default=str),
        json.dumps(report.processed_data, default=str),
        report.urgency_level.value,
        report.status.value,
        report.title,
        int(report.batch_updated),
        report.created_at.isoformat(),
    )


_INSERT_REPORT = """INSERT INTO reports
   (id, batch_id, report_type, fields, processed_data,
    urgency_level, status, title, batch_updated, created_at)
   VALUES (?,?,?,?,?,?,?,?,?,?)"""


def _write_batch(conn: sqlite3.Connection, batch: Batch, expected_version: int) -> Batch:
    """CAS update; returns the batch carrying its new version."""
    row = _batch_row(batch)
    row["version"] = expected_version + 1
    assignments = ", ".join(f"{col} = :{col}" for col in _BATCH_COLUMNS if col != "id")
    cur = conn.execute(
        f"UPDATE batches SET {assignments} WHERE id = :id AND version = :expected",
        {**row, "expected": expected_version},
    )
    if cur.rowcount == 0:
        raise ConcurrencyError(
            f"batch {batch.id} changed since version {expected_version}"
        )
    return batch.model_copy(update={"version": expected_version + 1})


# ── Public API ────────────────────────────────────────────────────────────────

def initialize_db(force_reseed: bool = False) -> None:
    """
    Create tables and populate with a simulated farm if the DB is empty.
    Safe to call multiple times (idempotent).
    """
    conn = _get_conn()
    _create_tables(conn)
    if not settings.SEED_DEMO_DATA:
        return

    # Import here to avoid circular deps
    from src.data.simulator import seed_demo_farm

    with _lock:
        count = conn.execute("SELECT COUNT(*) FROM batches").fetchone()[0]
        if count > 0 and not force_reseed:
            return  # Already seeded
        clear_all()
        seed_demo_farm()


def clear_all() -> None:
    """Delete every row from every table (schema is kept)."""
    conn = _get_conn()
    _create_tables(conn)
    with _transaction() as conn:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")


def insert_batch(batch: Batch) -> Batch:
    row = _batch_row(batch)
    cols = ", ".join(_BATCH_COLUMNS)
    marks = ", ".join(f":{col}" for col in _BATCH_COLUMNS)
    with _transaction() as conn:
        conn.execute(f"INSERT INTO batches ({cols}) VALUES ({marks})", row)
    return batch


def fetch_batch(batch_id: str) -> Batch | None:
    with _reading() as conn:
        row = conn.execute("SELECT * FROM batches WHERE id = ?", (batch_id,)).fetchone()
    return _row_to_batch(row) if row else None


def persist_batch(batch: Batch, expected_version: int) -> Batch:
    """Replace a batch if its stored version still equals `expected_version`."""
    with _transaction() as conn:
        return _write_batch(conn, batch, expected_version)


def persist_report(report: Report) -> Report:
    with _transaction() as conn:
        conn.execute(_INSERT_REPORT, _report_params(report))
    return report


def record_submission(
    report: Report,
    batch: Batch | None = None,
    expected_version: int | None = None,
) -> Batch | None:
    """
    Write the patched batch (when given) and append the report atomically.
    Either both rows are committed or neither is.
    """
    with _transaction() as conn:
        written = None
        if batch is not None:
            written = _write_batch(conn, batch, batch.version if expected_version is None else expected_version)
        conn.execute(_INSERT_REPORT, _report_params(report))
    return written


def query_all_active_batches() -> list[Batch]:
    with _reading() as conn:
        rows = conn.execute(
            "SELECT * FROM batches WHERE status != 'Completed' ORDER BY start_date ASC"
        ).fetchall()
    return [_row_to_batch(r) for r in rows]


def query_all_batches() -> list[Batch]:
    with _reading() as conn:
        rows = conn.execute("SELECT * FROM batches ORDER BY start_date ASC").fetchall()
    return [_row_to_batch(r) for r in rows]


def query_recent_reports(batch_id: str, limit: int = 3) -> list[Report]:
    """Newest-first reports of a batch."""
    with _reading() as conn:
        rows = conn.execute(
            """SELECT * FROM reports WHERE batch_id = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (batch_id, limit),
        ).fetchall()
    return [_row_to_report(r) for r in rows]


def query_batch_reports(batch_id: str) -> list[Report]:
    """The full ledger of a batch, oldest first."""
    with _reading() as conn:
        rows = conn.execute(
            "SELECT * FROM reports WHERE batch_id = ? ORDER BY created_at ASC, rowid ASC",
            (batch_id,),
        ).fetchall()
    return [_row_to_report(r) for r in rows]


def query_reports_since(since: datetime) -> list[Report]:
    with _reading() as conn:
        rows = conn.execute(
            "SELECT * FROM reports WHERE created_at >= ? ORDER BY created_at ASC, rowid ASC",
            (since.isoformat(),),
        ).fetchall()
    return [_row_to_report(r) for r in rows]


def query_unresolved_reports(urgency: UrgencyLevel | None = None) -> list[Report]:
    where = ["status = ?"]
    params: list = [ReportStatus.PENDING.value]
    if urgency is not None:
        where.append("urgency_level = ?")
        params.append(urgency.value)
    with _reading() as conn:
        rows = conn.execute(
            f"SELECT * FROM reports WHERE {' AND '.join(where)} ORDER BY created_at ASC",
            params,
        ).fetchall()
    return [_row_to_report(r) for r in rows]


def set_report_status(report_id: str, status: ReportStatus) -> bool:
    """Review workflow only; report contents stay immutable."""
    with _transaction() as conn:
        cur = conn.execute("UPDATE reports SET status = ? WHERE id = ?", (status.value, report_id))
    return cur.rowcount > 0


def save_batch_statistics(stats: BatchStatistics) -> None:
    with _transaction() as conn:
        conn.execute(
            """INSERT INTO batch_statistics (batch_id, payload, computed_at)
               VALUES (?, ?, ?)
               ON CONFLICT(batch_id) DO UPDATE SET
                   payload = excluded.payload, computed_at = excluded.computed_at""",
            (stats.batch_id, stats.model_dump_json(), stats.computed_at.isoformat()),
        )


def get_batch_statistics(batch_id: str) -> BatchStatistics | None:
    with _reading() as conn:
        row = conn.execute(
            "SELECT payload FROM batch_statistics WHERE batch_id = ?", (batch_id,)
        ).fetchone()
    return BatchStatistics.model_validate_json(row["payload"]) if row else None


# ── Alerts / insights ─────────────────────────────────────────────────────────

def sync_alerts(alerts: list[Alert]) -> list[Alert]:
    """
    Reconcile the stored alert set with the latest scan.

      new key       → inserted
      existing key  → message/severity refreshed, first-seen timestamp and
                      read/dismissed flags kept
      missing key   → deleted (condition cleared)

    Returns the scan's alerts that are not dismissed, with stored flags.
    """
    keys = [a.key for a in alerts]
    with _transaction() as conn:
        for a in alerts:
            conn.execute(
                """INSERT INTO alerts
                   (key, rule_id, batch_id, batch_name, severity, title,
                    message, value, threshold, timestamp)
                   VALUES (?,?,?,?,?,?,?,?,?,?)
                   ON CONFLICT(key) DO UPDATE SET
                       batch_name = excluded.batch_name,
                       severity = excluded.severity,
                       title = excluded.title,
                       message = excluded.message,
                       value = excluded.value,
                       threshold = excluded.threshold""",
                (a.key, a.rule_id, a.batch_id, a.batch_name, a.severity.value,
                 a.title, a.message, a.value, a.threshold, a.timestamp.isoformat()),
            )
        _delete_missing(conn, "alerts", keys)
        rows = conn.execute("SELECT * FROM alerts WHERE dismissed = 0").fetchall()

    stored = {r["key"]: r for r in rows}
    return [
        a.model_copy(update={
            "timestamp": datetime.fromisoformat(stored[a.key]["timestamp"]),
            "acknowledged": bool(stored[a.key]["acknowledged"]),
        })
        for a in alerts
        if a.key in stored
    ]


def sync_insights(insights: list[Insight]) -> list[Insight]:
    """Keyed reconciliation of insights; same rules as sync_alerts()."""
    keys = [i.key for i in insights]
    with _transaction() as conn:
        for i in insights:
            conn.execute(
                """INSERT INTO insights
                   (key, rule_id, insight_type, category, title, description,
                    recommendation, priority, affected_batches, batch_id,
                    report_id, actionable, timestamp)
                   VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?)
                   ON CONFLICT(key) DO UPDATE SET
                       insight_type = excluded.insight_type,
                       title = excluded.title,
                       description = excluded.description,
                       recommendation = excluded.recommendation,
                       priority = excluded.priority,
                       affected_batches = excluded.affected_batches""",
                (i.key, i.rule_id, i.insight_type.value, i.category, i.title,
                 i.description, i.recommendation, i.priority.value,
                 json.dumps(i.affected_batches), i.batch_id, i.report_id,
                 int(i.actionable), i.timestamp.isoformat()),
            )
        _delete_missing(conn, "insights", keys)
        rows = conn.execute("SELECT key, timestamp FROM insights WHERE dismissed = 0").fetchall()

    stored = {r["key"]: r["timestamp"] for r in rows}
    return [
        i.model_copy(update={"timestamp": datetime.fromisoformat(stored[i.key])})
        for i in insights
        if i.key in stored
    ]


def _delete_missing(conn: sqlite3.Connection, table: str, keys: list[str]) -> None:
    if not keys:
        conn.execute(f"DELETE FROM {table}")
        return
    marks = ",".join("?" for _ in keys)
    conn.execute(f"DELETE FROM {table} WHERE key NOT IN ({marks})", keys)


def get_alerts(include_dismissed: bool = False, limit: int = MAX_ALERTS_DISPLAY) -> list[Alert]:
    where = "" if include_dismissed else "WHERE dismissed = 0"
    with _reading() as conn:
        rows = conn.execute(
            f"SELECT * FROM alerts {where} ORDER BY timestamp DESC LIMIT ?", (limit,)
        ).fetchall()
    return [Alert.model_validate(dict(r)) for r in rows]


def acknowledge_alert(key: str) -> bool:
    with _transaction() as conn:
        cur = conn.execute("UPDATE alerts SET acknowledged = 1 WHERE key = ?", (key,))
    return cur.rowcount > 0


def dismiss_alert(key: str) -> bool:
    with _transaction() as conn:
        cur = conn.execute(
            "UPDATE alerts SET dismissed = 1, acknowledged = 1 WHERE key = ?", (key,)
        )
    return cur.rowcount > 0


def dismiss_insight(key: str) -> bool:
    with _transaction() as conn:
        cur = conn.execute("UPDATE insights SET dismissed = 1 WHERE key = ?", (key,))
    return cur.rowcount > 0


def get_active_alert_count(batch_id: str | None = None) -> int:
    """Count alerts that are neither read nor dismissed."""
    where = "acknowledged = 0 AND dismissed = 0"
    params: list = []
    if batch_id:
        where += " AND batch_id = ?"
        params.append(batch_id)
    with _reading() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM alerts WHERE {where}", params).fetchone()[0]
