"""
src/engine/alerts.py
────────────────────
Automated alert scanning.

scan() is a pure function of (batches, reports, now). Each alert carries a
stable key "rule_id:batch_id", so repeated scans over the same data yield the
same key set; run_alert_scan() reconciles that set with the stored one
(acknowledged/dismissed state lives in the store, never in the scan).

Per-batch rules (non-completed batches only):
  critical-mortality  rate > 15 %                    → critical
  high-mortality      rate > 10 %                    → warning
  poor-fcr            FCR > 2.2                      → warning
  poor-health         status Poor                    → critical
  harvest-window      age 35–42 days, Active         → info
  harvest-overdue     age > 45 days, Active          → warning
  mortality-spike     avg deaths of last reports > 20 → critical

Farm-wide rule:
  critical-reports-pending  Pending reports with critical urgency → critical
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

import pandas as pd

from config.alerts import SEVERITY_ORDER, AlertSeverity
from config.settings import settings
from config.thresholds import REPORTING
from src.analytics.health_index import batch_age_days
from src.analytics.thresholds import classify_harvest, evaluate_current_value, get_alert_band
from src.analytics.trends import recent_death_average, reports_to_frame
from src.data import store
from src.data.models import (
    Alert,
    Batch,
    BatchStatus,
    HealthStatus,
    Report,
    ReportStatus,
    UrgencyLevel,
)
from src.i18n.translator import t

logger = logging.getLogger(__name__)

PENDING_CRITICAL_RULE = "critical-reports-pending"

BatchRule = Callable[[Batch, pd.DataFrame, datetime, str | None], Alert | None]


def alert_key(rule_id: str, batch_id: str | None = None) -> str:
    return f"{rule_id}:{batch_id}" if batch_id else rule_id


def _make_alert(
    rule_id: str,
    batch: Batch | None,
    severity: AlertSeverity,
    now: datetime,
    lang: str | None,
    value: float | None = None,
    threshold: float | None = None,
    **params,
) -> Alert:
    batch_name = (batch.name or batch.id) if batch else ""
    return Alert(
        key=alert_key(rule_id, batch.id if batch else None),
        rule_id=rule_id,
        batch_id=batch.id if batch else None,
        batch_name=batch_name,
        severity=severity,
        title=t(f"alerts.{rule_id}.title", lang),
        message=t(f"alerts.{rule_id}.message", lang, batch=batch_name, **params),
        value=value,
        threshold=threshold,
        timestamp=now,
    )


# ── Batch rules ───────────────────────────────────────────────────────────────

def _mortality_rule(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> Alert | None:
    band = get_alert_band("mortality_rate")
    level = evaluate_current_value(batch.mortality_rate, band)
    if level == "critical":
        return _make_alert("critical-mortality", batch, AlertSeverity.CRITICAL, now, lang,
                           value=batch.mortality_rate, threshold=band.critical,
                           rate=batch.mortality_rate)
    if level == "warning":
        return _make_alert("high-mortality", batch, AlertSeverity.WARNING, now, lang,
                           value=batch.mortality_rate, threshold=band.warning,
                           rate=batch.mortality_rate, limit=band.warning)
    return None


def _fcr_rule(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> Alert | None:
    band = get_alert_band("feed_efficiency")
    if evaluate_current_value(batch.feed_efficiency, band) != "warning":
        return None
    return _make_alert("poor-fcr", batch, AlertSeverity.WARNING, now, lang,
                       value=batch.feed_efficiency, threshold=band.warning,
                       fcr=batch.feed_efficiency)


def _health_rule(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> Alert | None:
    if batch.health_status != HealthStatus.POOR:
        return None
    return _make_alert("poor-health", batch, AlertSeverity.CRITICAL, now, lang,
                       value=float(batch.health_score))


def _harvest_rule(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> Alert | None:
    if batch.status != BatchStatus.ACTIVE:
        return None
    age = batch_age_days(batch.start_date, now)
    stage = classify_harvest(age)
    if stage == "window":
        return _make_alert("harvest-window", batch, AlertSeverity.INFO, now, lang,
                           value=float(age), age=age)
    if stage == "overdue":
        return _make_alert("harvest-overdue", batch, AlertSeverity.WARNING, now, lang,
                           value=float(age), age=age)
    return None


def _spike_rule(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> Alert | None:
    window = settings.SPIKE_REPORT_WINDOW
    average = recent_death_average(history, batch.id, window=window,
                                   min_reports=REPORTING.spike_min_reports)
    if average is None or average <= REPORTING.spike_avg_deaths:
        return None
    count = min(window, int((history["batch_id"] == batch.id).sum()))
    return _make_alert("mortality-spike", batch, AlertSeverity.CRITICAL, now, lang,
                       value=round(average, 2), threshold=REPORTING.spike_avg_deaths,
                       average=average, count=count)


BATCH_RULES: tuple[BatchRule, ...] = (
    _mortality_rule,
    _fcr_rule,
    _health_rule,
    _harvest_rule,
    _spike_rule,
)


def _pending_critical_alert(reports: list[Report], now: datetime, lang: str | None) -> Alert | None:
    pending = [
        r for r in reports
        if r.urgency_level == UrgencyLevel.CRITICAL and r.status == ReportStatus.PENDING
    ]
    if not pending:
        return None
    return _make_alert(PENDING_CRITICAL_RULE, None, AlertSeverity.CRITICAL, now, lang,
                       value=float(len(pending)), count=len(pending))


# ── Public API ────────────────────────────────────────────────────────────────

def scan(
    batches: list[Batch],
    reports: list[Report],
    now: datetime,
    lang: str | None = None,
) -> list[Alert]:
    """
    Evaluate every alert rule against a snapshot of batches and reports.

    A rule failing on one batch is logged and skipped; the rest of the scan
    still runs. Output is sorted by severity (critical first), then key.
    """
    history = reports_to_frame(reports)
    alerts: list[Alert] = []

    for batch in batches:
        if batch.status == BatchStatus.COMPLETED:
            continue
        try:
            found = [rule(batch, history, now, lang) for rule in BATCH_RULES]
        except Exception:
            logger.exception("Alert rules failed for batch %s; skipping", batch.id)
            continue
        alerts.extend(a for a in found if a is not None)

    pending = _pending_critical_alert(reports, now, lang)
    if pending is not None:
        alerts.append(pending)

    alerts.sort(key=lambda a: (-SEVERITY_ORDER[a.severity], a.key))
    return alerts


def load_scan_inputs() -> tuple[list[Batch], list[Report]]:
    """Active batches, their most recent reports, and unresolved critical reports."""
    batches = store.query_all_active_batches()
    reports: dict[str, Report] = {}
    for batch in batches:
        for report in store.query_recent_reports(batch.id, settings.SPIKE_REPORT_WINDOW):
            reports[report.id] = report
    for report in store.query_unresolved_reports(UrgencyLevel.CRITICAL):
        reports[report.id] = report
    return batches, list(reports.values())


def run_alert_scan(now: datetime | None = None, lang: str | None = None) -> list[Alert]:
    """Scan the store and reconcile the keyed alert table. Returns visible alerts."""
    now = now or datetime.now(UTC)
    batches, reports = load_scan_inputs()
    alerts = scan(batches, reports, now, lang)
    visible = store.sync_alerts(alerts)
    logger.info(
        "Alert scan: %d batches, %d alerts (%d visible)",
        len(batches), len(alerts), len(visible),
    )
    return visible


def acknowledge_alert(key: str) -> bool:
    """Mark an alert as read. Returns False for unknown keys."""
    return store.acknowledge_alert(key)


def dismiss_alert(key: str) -> bool:
    """Hide an alert for as long as its condition persists."""
    return store.dismiss_alert(key)
