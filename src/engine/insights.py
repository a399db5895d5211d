"""
src/engine/insights.py
──────────────────────
Rule-based management insights and recommendations.

generate_insights() is a pure function of (batches, reports, now) and, like
the alert scan, keys every insight by "rule_id:scope" so a recurring
condition maps onto the same stored insight instead of a new one each run.

Output is ordered high → medium → low priority.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pandas as pd

from config.alerts import PRIORITY_ORDER, InsightCategory, InsightPriority, InsightType
from config.settings import settings
from config.thresholds import HARVEST, MORTALITY, REPORTING, TRENDS
from src.analytics.health_index import batch_age_days, compute_farm_mortality
from src.analytics.thresholds import evaluate_current_value, get_insight_band
from src.analytics.trends import fcr_trend, mortality_trend, reports_since, reports_to_frame
from src.data import store
from src.data.models import (
    Batch,
    BatchStatus,
    HealthStatus,
    Insight,
    Report,
    ReportStatus,
    ReportType,
    UrgencyLevel,
)
from src.i18n.translator import t

logger = logging.getLogger(__name__)

_URGENT_HEALTH = {UrgencyLevel.HIGH.value, UrgencyLevel.CRITICAL.value}


def insight_key(rule_id: str, scope: str | None = None) -> str:
    return f"{rule_id}:{scope}" if scope else rule_id


def _make_insight(
    rule_id: str,
    insight_type: InsightType,
    category: InsightCategory,
    priority: InsightPriority,
    now: datetime,
    lang: str | None,
    scope: str | None = None,
    affected: list[str] | None = None,
    batch_id: str | None = None,
    report_id: str | None = None,
    **params,
) -> Insight:
    return Insight(
        key=insight_key(rule_id, scope),
        rule_id=rule_id,
        insight_type=insight_type,
        category=category.value,
        title=t(f"insights.{rule_id}.title", lang, **params),
        description=t(f"insights.{rule_id}.description", lang, **params),
        recommendation=t(f"insights.{rule_id}.recommendation", lang),
        priority=priority,
        affected_batches=affected or [],
        batch_id=batch_id,
        report_id=report_id,
        timestamp=now,
    )


def _label(batch: Batch) -> str:
    return batch.name or batch.id


# ── Per-batch rules ───────────────────────────────────────────────────────────

def _batch_insights(batch: Batch, history: pd.DataFrame, now: datetime, lang: str | None) -> list[Insight]:
    found: list[Insight] = []
    name = _label(batch)
    common = {"now": now, "lang": lang, "scope": batch.id,
              "affected": [name], "batch_id": batch.id, "batch": name}

    if batch.bird_count > 0:
        rate = batch.mortality_rate
        level = evaluate_current_value(rate, get_insight_band("mortality_rate"))
        if level == "critical":
            found.append(_make_insight(
                "high-mortality", InsightType.CRITICAL, InsightCategory.MORTALITY,
                InsightPriority.HIGH, rate=rate, limit=MORTALITY.insight_critical, **common))
        elif level == "warning":
            found.append(_make_insight(
                "elevated-mortality", InsightType.WARNING, InsightCategory.MORTALITY,
                InsightPriority.MEDIUM, rate=rate, limit=MORTALITY.insight_warning, **common))
        elif level == "success":
            found.append(_make_insight(
                "excellent-mortality", InsightType.SUCCESS, InsightCategory.MORTALITY,
                InsightPriority.LOW, rate=rate, **common))

    fcr = batch.feed_efficiency
    if fcr > 0:
        level = evaluate_current_value(fcr, get_insight_band("feed_efficiency"))
        if level == "warning":
            found.append(_make_insight(
                "poor-fcr", InsightType.WARNING, InsightCategory.FEED,
                InsightPriority.MEDIUM, fcr=fcr, **common))
        elif level == "success":
            found.append(_make_insight(
                "excellent-fcr", InsightType.SUCCESS, InsightCategory.FEED,
                InsightPriority.LOW, fcr=fcr, **common))

    trend, slope, fitted = mortality_trend(history, batch.id, TRENDS.report_window,
                                           TRENDS.min_points, TRENDS.mortality_slope)
    if trend == "rising":
        found.append(_make_insight(
            "mortality-trend", InsightType.WARNING, InsightCategory.TREND,
            InsightPriority.MEDIUM, slope=slope, count=fitted, **common))

    trend, slope, fitted = fcr_trend(history, batch.id, TRENDS.report_window,
                                     TRENDS.min_points, TRENDS.fcr_slope)
    if trend == "rising":
        found.append(_make_insight(
            "fcr-trend", InsightType.WARNING, InsightCategory.TREND,
            InsightPriority.MEDIUM, slope=slope, count=fitted, **common))

    return found


# ── Farm-wide rules ───────────────────────────────────────────────────────────

def _farm_insights(
    batches: list[Batch],
    reports: list[Report],
    history: pd.DataFrame,
    now: datetime,
    lang: str | None,
) -> list[Insight]:
    found: list[Insight] = []
    if not batches:
        return found

    poor = [_label(b) for b in batches if b.health_status == HealthStatus.POOR]
    if poor:
        found.append(_make_insight(
            "poor-health", InsightType.CRITICAL, InsightCategory.HEALTH, InsightPriority.HIGH,
            now, lang, affected=poor, count=len(poor), batches=", ".join(poor)))

    days = REPORTING.cadence_window_days
    weekly = reports_since(history, now, days * 24)
    if len(weekly) < REPORTING.min_reports_per_batch * len(batches):
        found.append(_make_insight(
            "low-reporting", InsightType.WARNING, InsightCategory.REPORTING,
            InsightPriority.MEDIUM, now, lang,
            reports=len(weekly), days=days, batches=len(batches)))

    farm_rate = compute_farm_mortality(batches)
    if farm_rate is not None and farm_rate < MORTALITY.farm_excellent:
        found.append(_make_insight(
            "farm-performance", InsightType.SUCCESS, InsightCategory.PERFORMANCE,
            InsightPriority.LOW, now, lang, rate=farm_rate))

    mature = [
        _label(b) for b in batches
        if b.status == BatchStatus.ACTIVE and batch_age_days(b.start_date, now) > HARVEST.opens_day
    ]
    if mature:
        found.append(_make_insight(
            "harvest-planning", InsightType.INFO, InsightCategory.PLANNING, InsightPriority.MEDIUM,
            now, lang, affected=mature, count=len(mature), age=HARVEST.opens_day,
            batches=", ".join(mature)))

    pending = [
        r for r in reports
        if r.urgency_level == UrgencyLevel.CRITICAL and r.status == ReportStatus.PENDING
    ]
    if pending:
        found.append(_make_insight(
            "pending-critical-reports", InsightType.CRITICAL, InsightCategory.REPORTS,
            InsightPriority.HIGH, now, lang, count=len(pending)))

    return found


def _recent_report_insights(
    batches: list[Batch],
    reports: list[Report],
    history: pd.DataFrame,
    now: datetime,
    lang: str | None,
) -> list[Insight]:
    """Report-scoped insights for the last day of submissions."""
    names = {b.id: _label(b) for b in batches}
    by_id = {r.id: r for r in reports}
    found: list[Insight] = []

    recent = reports_since(history, now, REPORTING.recent_window_hours)
    for row in recent.itertuples(index=False):
        name = names.get(row.batch_id, row.batch_id)
        scoped = {"now": now, "lang": lang, "scope": row.report_id, "affected": [name],
                  "batch_id": row.batch_id, "report_id": row.report_id, "batch": name}
        if row.deaths > REPORTING.single_report_deaths:
            found.append(_make_insight(
                "recent-high-mortality", InsightType.WARNING, InsightCategory.RECENT_REPORT,
                InsightPriority.HIGH, deaths=int(row.deaths), **scoped))
        if row.report_type == ReportType.HEALTH.value and row.urgency_level in _URGENT_HEALTH:
            found.append(_make_insight(
                "urgent-health-report", InsightType.WARNING, InsightCategory.HEALTH_REPORT,
                InsightPriority.HIGH, title=by_id[row.report_id].title, **scoped))
    return found


# ── Public API ────────────────────────────────────────────────────────────────

def generate_insights(
    batches: list[Batch],
    reports: list[Report],
    now: datetime,
    lang: str | None = None,
) -> list[Insight]:
    """Evaluate every insight rule; sorted by priority, then key."""
    active = [b for b in batches if b.status != BatchStatus.COMPLETED]
    history = reports_to_frame(reports)
    insights: list[Insight] = []

    for batch in active:
        try:
            insights.extend(_batch_insights(batch, history, now, lang))
        except Exception:
            logger.exception("Insight rules failed for batch %s; skipping", batch.id)

    insights.extend(_farm_insights(active, reports, history, now, lang))
    insights.extend(_recent_report_insights(active, reports, history, now, lang))

    insights.sort(key=lambda i: (PRIORITY_ORDER[i.priority], i.key))
    return insights


def load_insight_inputs(now: datetime) -> tuple[list[Batch], list[Report]]:
    """Active batches, reports inside the trend window, and unresolved critical reports."""
    batches = store.query_all_active_batches()
    since = now - timedelta(days=settings.TREND_WINDOW_DAYS)
    reports = {r.id: r for r in store.query_reports_since(since)}
    for report in store.query_unresolved_reports(UrgencyLevel.CRITICAL):
        reports.setdefault(report.id, report)
    return batches, list(reports.values())


def run_insight_scan(now: datetime | None = None, lang: str | None = None) -> list[Insight]:
    """Generate insights from the store and reconcile the keyed insight table."""
    now = now or datetime.now(UTC)
    batches, reports = load_insight_inputs(now)
    insights = generate_insights(batches, reports, now, lang)
    visible = store.sync_insights(insights)
    logger.info(
        "Insight scan: %d batches, %d reports, %d insights (%d visible)",
        len(batches), len(reports), len(insights), len(visible),
    )
    return visible


def dismiss_insight(key: str) -> bool:
    return store.dismiss_insight(key)
