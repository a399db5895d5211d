"""
src/engine/aggregator.py
────────────────────────
Aggregation applier: turns submitted field reports into batch updates.

Submission pipeline:
  1. Parse the report kind            → ValidationError on unknown kinds
  2. Normalize fields + validate      → ValidationError on missing, negative
                                        or out-of-range values
  3. Load the batch                   → NotFoundError
  4. Run the kind's calculator and merge its patch
  5. Write batch + report in one transaction, guarded by batch.version
     (retried on a version conflict, up to MAX_SUBMIT_ATTEMPTS)
  6. Refresh the batch statistics (best effort)

Administrative operations (register, edit, complete) and a ledger rebuild
go through the same merge/re-derive path, so derived fields can never
disagree with the counters they come from.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import pydantic

from config.settings import settings
from config.thresholds import INPUT_LIMITS
from src.analytics.calculators import calculate
from src.analytics.health_index import (
    compute_batch_statistics,
    mortality_rate,
    remaining_birds,
    status_for_score,
)
from src.data import store
from src.data.errors import ConcurrencyError, NotFoundError, PersistenceError, ValidationError
from src.data.models import (
    Batch,
    BatchPatch,
    BatchStatus,
    HealthStatus,
    Report,
    ReportType,
    SubmissionResult,
    UrgencyLevel,
)
from src.data.normalizer import QUANTITIES, NormalizedFields, QuantityKind, normalize_fields

logger = logging.getLogger(__name__)

DEFAULT_URGENCY: dict[ReportType, UrgencyLevel] = {
    ReportType.MORTALITY: UrgencyLevel.HIGH,
    ReportType.HEALTH: UrgencyLevel.HIGH,
    ReportType.VACCINATION: UrgencyLevel.HIGH,
    ReportType.EMERGENCY: UrgencyLevel.CRITICAL,
}

# Quantities that may legitimately be negative
_SIGNED_QUANTITIES = {"temperature"}

# Batch fields an administrator may edit directly
EDITABLE_FIELDS = frozenset({
    "name", "farmer_name", "bird_count", "current_weight",
    "temperature", "humidity", "status", "start_date",
})

# Counters zeroed before the ledger is replayed
_LEDGER_RESET: dict[str, Any] = {
    "total_mortality": 0,
    "mortality_rate": 0.0,
    "health_score": 100,
    "health_status": HealthStatus.EXCELLENT,
    "feed_used": 0.0,
    "feed_efficiency": 0.0,
    "current_weight": 0.0,
    "vaccinations": 0,
    "temperature": None,
    "humidity": None,
    "last_mortality_update": None,
    "last_health_check": None,
}


# ── Parsing / validation ──────────────────────────────────────────────────────

def parse_report_type(value: ReportType | str) -> ReportType:
    """Case-insensitive report kind lookup."""
    if isinstance(value, ReportType):
        return value
    try:
        return ReportType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown report type: {value!r}") from None


def _parse_urgency(value: Any, kind: ReportType) -> UrgencyLevel:
    if value is None or value == "":
        return DEFAULT_URGENCY.get(kind, UrgencyLevel.NORMAL)
    try:
        return UrgencyLevel(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown urgency level: {value!r}") from None


def _parse_timestamp(value: Any, default: datetime) -> datetime:
    if value is None:
        return default
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"invalid created_at: {value!r}") from None
    if not isinstance(value, datetime):
        raise ValidationError(f"invalid created_at: {value!r}")
    # stored as ISO text, so keep every timestamp in UTC for ordering
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


def validate_fields(fields: NormalizedFields) -> None:
    """Reject missing required quantities and negative or out-of-range counts and amounts."""
    missing = fields.missing_required()
    if missing:
        raise ValidationError(
            f"{fields.report_type.value} report is missing required field(s): {', '.join(missing)}"
        )
    for name in fields.present:
        kind = QUANTITIES[name].kind
        if kind not in (QuantityKind.COUNT, QuantityKind.AMOUNT):
            continue
        value = fields.get(name)
        if value < 0 and name not in _SIGNED_QUANTITIES:
            raise ValidationError(f"{name} must not be negative, got {value}")
        limit = INPUT_LIMITS.max_count if kind == QuantityKind.COUNT else INPUT_LIMITS.max_amount
        if abs(value) > limit:
            raise ValidationError(f"{name} is out of range, got {value} (limit {limit:g})")


# ── Merge ─────────────────────────────────────────────────────────────────────

def _rederive(data: dict[str, Any]) -> Batch:
    """Recompute derived fields from their sources and re-validate."""
    data["remaining_birds"] = remaining_birds(data["bird_count"], data["total_mortality"])
    data["mortality_rate"] = mortality_rate(data["total_mortality"], data["bird_count"])
    data["health_status"] = status_for_score(data["health_score"])
    try:
        batch = Batch.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(str(exc)) from exc
    if batch.bird_count > INPUT_LIMITS.max_count:
        raise ValidationError(f"bird_count is out of range, got {batch.bird_count}")
    if batch.current_weight > INPUT_LIMITS.max_amount:
        raise ValidationError(f"current_weight is out of range, got {batch.current_weight}")
    return batch


def apply_patch(batch: Batch, patch: BatchPatch) -> Batch:
    """Merge a patch into a copy of `batch`; patch fields win."""
    data = batch.model_dump()
    data.update(patch.changes())
    return _rederive(data)


def _differs(before: Batch, after: Batch) -> bool:
    return before.model_dump(exclude={"version"}) != after.model_dump(exclude={"version"})


def _require_batch(batch_id: str) -> Batch:
    batch = store.fetch_batch(batch_id)
    if batch is None:
        raise NotFoundError(f"batch {batch_id} not found")
    return batch


def _refresh_statistics(batch: Batch, now: datetime) -> None:
    try:
        store.save_batch_statistics(compute_batch_statistics(batch, now))
    except Exception:
        logger.warning("Statistics refresh failed for batch %s", batch.id, exc_info=True)


# ── Report submission ─────────────────────────────────────────────────────────

def submit_report(
    batch_id: str,
    report_type: ReportType | str,
    fields: Mapping[str, Any] | None,
    meta: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> SubmissionResult:
    """
    Validate, calculate and persist one field report.

    Args:
        batch_id:    Target batch
        report_type: Report kind, case-insensitive
        fields:      Raw field map as submitted (any accepted synonym)
        meta:        Optional urgency_level, title, created_at
        now:         Clock override (tests, simulation)

    Raises:
        ValidationError, NotFoundError, PersistenceError
    """
    kind = parse_report_type(report_type)
    if fields is not None and not isinstance(fields, Mapping):
        raise ValidationError(f"fields must be a mapping, got {type(fields).__name__}")
    raw = dict(fields or {})
    normalized = normalize_fields(kind, raw)
    validate_fields(normalized)

    meta = meta or {}
    now = now or datetime.now(UTC)
    created_at = _parse_timestamp(meta.get("created_at"), now)
    urgency = _parse_urgency(meta.get("urgency_level"), kind)
    title = str(meta.get("title") or f"{kind.value.capitalize()} report")

    for attempt in range(1, settings.MAX_SUBMIT_ATTEMPTS + 1):
        batch = _require_batch(batch_id)
        metrics, patch = calculate(normalized, batch, created_at)
        merged = apply_patch(batch, patch)
        changed = _differs(batch, merged)

        report = Report(
            id=str(uuid.uuid4()),
            batch_id=batch_id,
            report_type=kind,
            fields=raw,
            processed_data=metrics.audit_payload(),
            urgency_level=urgency,
            title=title,
            batch_updated=changed,
            created_at=created_at,
        )
        try:
            written = store.record_submission(
                report, merged if changed else None, expected_version=batch.version
            )
        except ConcurrencyError:
            logger.info(
                "Batch %s changed during %s report (attempt %d/%d), retrying",
                batch_id, kind.value, attempt, settings.MAX_SUBMIT_ATTEMPTS,
            )
            continue

        final = written or batch
        logger.info(
            "Accepted %s report %s for batch %s (changed=%s)",
            kind.value, report.id, batch_id, changed,
        )
        if changed:
            _refresh_statistics(final, now)
        return SubmissionResult(
            report=report,
            batch=final,
            batch_patch=patch,
            derived_metrics=metrics,
            changed=changed,
        )

    raise PersistenceError(
        f"batch {batch_id} kept changing; gave up after {settings.MAX_SUBMIT_ATTEMPTS} attempts"
    )


# ── Batch lifecycle ───────────────────────────────────────────────────────────

def register_batch(
    name: str,
    bird_count: int,
    batch_id: str | None = None,
    farmer_name: str | None = None,
    start_date: datetime | None = None,
    status: BatchStatus = BatchStatus.ACTIVE,
    current_weight: float = 0.0,
    now: datetime | None = None,
) -> Batch:
    """Create a batch with its derived fields initialised."""
    batch_id = batch_id or str(uuid.uuid4())
    if store.fetch_batch(batch_id) is not None:
        raise ValidationError(f"batch {batch_id} already exists")
    if status == BatchStatus.COMPLETED:
        raise ValidationError("a batch cannot be registered as Completed")

    batch = _rederive({
        "id": batch_id,
        "name": name,
        "farmer_name": farmer_name,
        "bird_count": bird_count,
        "total_mortality": 0,
        "health_score": 100,
        "current_weight": current_weight,
        "status": status,
        "start_date": start_date or now or datetime.now(UTC),
    })
    store.insert_batch(batch)
    logger.info("Registered batch %s (%s, %d birds)", batch.id, batch.name, batch.bird_count)
    return batch


def edit_batch(batch_id: str, changes: Mapping[str, Any], now: datetime | None = None) -> Batch:
    """Administrative edit of non-ledger fields, with re-derivation."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"fields not editable: {', '.join(sorted(unknown))}")

    for _ in range(settings.MAX_SUBMIT_ATTEMPTS):
        batch = _require_batch(batch_id)
        data = batch.model_dump()
        data.update(changes)
        edited = _rederive(data)
        # Completed is terminal
        if batch.status == BatchStatus.COMPLETED and edited.status != BatchStatus.COMPLETED:
            raise ValidationError(f"batch {batch_id} is completed and cannot be reopened")
        if not _differs(batch, edited):
            return batch
        try:
            written = store.persist_batch(edited, batch.version)
        except ConcurrencyError:
            continue
        logger.info("Edited batch %s: %s", batch_id, ", ".join(sorted(changes)))
        _refresh_statistics(written, now or datetime.now(UTC))
        return written

    raise PersistenceError(f"batch {batch_id} kept changing during edit")


def complete_batch(batch_id: str, now: datetime | None = None) -> Batch:
    return edit_batch(batch_id, {"status": BatchStatus.COMPLETED}, now=now)


def rebuild_batch(batch_id: str, persist: bool = False, now: datetime | None = None) -> Batch:
    """
    Re-derive a batch by folding its report ledger from reset counters.

    With persist=True the rebuilt aggregate is written back when it differs
    from the stored one.
    """
    batch = _require_batch(batch_id)
    state = batch.model_copy(update=_LEDGER_RESET)
    state = _rederive(state.model_dump())

    for report in store.query_batch_reports(batch_id):
        normalized = normalize_fields(report.report_type, report.fields)
        _, patch = calculate(normalized, state, report.created_at)
        state = apply_patch(state, patch)

    if persist and _differs(batch, state):
        logger.warning("Batch %s drifted from its ledger; rewriting aggregate", batch_id)
        state = store.persist_batch(state, batch.version)
        _refresh_statistics(state, now or datetime.now(UTC))
    return state
