"""
src/analytics/thresholds.py
────────────────────────────
Threshold bands for batch metrics.

Provides:
  - Static alert bands (mortality rate, FCR) from config/thresholds.py
  - Insight bands, which additionally carry a "success" floor
  - Classification of a current value against a band
  - Harvest-window classification from batch age
"""
from __future__ import annotations

from dataclasses import dataclass

from config.thresholds import FEED, HARVEST, MORTALITY


@dataclass(frozen=True)
class ThresholdBand:
    variable: str
    warning: float | None
    critical: float | None
    success_below: float | None = None   # e.g. excellent mortality control


ALERT_BANDS: dict[str, ThresholdBand] = {
    "mortality_rate": ThresholdBand(
        variable="mortality_rate",
        warning=MORTALITY.alert_warning,
        critical=MORTALITY.alert_critical,
    ),
    "feed_efficiency": ThresholdBand(
        variable="feed_efficiency",
        warning=FEED.alert_poor,
        critical=None,
    ),
}

INSIGHT_BANDS: dict[str, ThresholdBand] = {
    "mortality_rate": ThresholdBand(
        variable="mortality_rate",
        warning=MORTALITY.insight_warning,
        critical=MORTALITY.insight_critical,
        success_below=MORTALITY.insight_excellent,
    ),
    "feed_efficiency": ThresholdBand(
        variable="feed_efficiency",
        warning=FEED.insight_poor,
        critical=None,
        success_below=FEED.insight_excellent,
    ),
}


def get_alert_band(variable: str) -> ThresholdBand:
    """Alert band for a batch metric; an empty band when none is defined."""
    return ALERT_BANDS.get(variable, ThresholdBand(variable=variable, warning=None, critical=None))


def get_insight_band(variable: str) -> ThresholdBand:
    return INSIGHT_BANDS.get(variable, ThresholdBand(variable=variable, warning=None, critical=None))


def evaluate_current_value(value: float, band: ThresholdBand) -> str:
    """
    Classify a current value against a ThresholdBand.

    Limits are exclusive: a value must exceed a limit to trip it.

    Returns: "ok" | "success" | "warning" | "critical"
    """
    if band.critical is not None and value > band.critical:
        return "critical"
    if band.warning is not None and value > band.warning:
        return "warning"
    if band.success_below is not None and value < band.success_below:
        return "success"
    return "ok"


def classify_harvest(age_days: int) -> str:
    """
    Returns: "growing" | "window" | "late" | "overdue"

    "late" covers the days between the close of the window and the
    overdue cut-off, when neither harvest alert is raised.
    """
    if age_days > HARVEST.overdue_after_day:
        return "overdue"
    if HARVEST.opens_day <= age_days <= HARVEST.closes_day:
        return "window"
    if age_days > HARVEST.closes_day:
        return "late"
    return "growing"
