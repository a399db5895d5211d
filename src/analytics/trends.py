"""
src/analytics/trends.py
───────────────────────
Report-history analytics for the alert and insight scanners.

Algorithm: least-squares slope over the most recent observations.
  slope = polyfit(x = report index, y = value, deg = 1)[0]
  slope >  tolerance → "rising"
  slope < −tolerance → "falling"
  otherwise          → "stable"

Report histories are handled as pandas DataFrames with one row per report:
  report_id, batch_id, report_type, urgency_level, status, created_at,
  deaths, feed_efficiency
"""
from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from src.data.models import Report, ReportType
from src.data.normalizer import extract_deaths

FRAME_COLUMNS = [
    "report_id",
    "batch_id",
    "report_type",
    "urgency_level",
    "status",
    "created_at",
    "deaths",
    "feed_efficiency",
]

_FCR_KINDS = {ReportType.FEED.value, ReportType.DAILY.value}


def reports_to_frame(reports: list[Report]) -> pd.DataFrame:
    """Convert Reports to a DataFrame sorted oldest → newest."""
    if not reports:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    rows = [
        {
            "report_id": r.id,
            "batch_id": r.batch_id,
            "report_type": r.report_type.value,
            "urgency_level": r.urgency_level.value,
            "status": r.status.value,
            "created_at": r.created_at,
            "deaths": extract_deaths(r.fields),
            "feed_efficiency": r.processed_data.get("feed_efficiency", np.nan),
        }
        for r in reports
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    df["feed_efficiency"] = pd.to_numeric(df["feed_efficiency"], errors="coerce")
    return df.sort_values("created_at", kind="stable").reset_index(drop=True)


def batch_history(df: pd.DataFrame, batch_id: str) -> pd.DataFrame:
    return df[df["batch_id"] == batch_id]


def reports_since(df: pd.DataFrame, now: datetime, hours: float) -> pd.DataFrame:
    """Rows created within the last `hours` hours (inclusive)."""
    if df.empty:
        return df
    since = pd.Timestamp(now - timedelta(hours=hours))
    if since.tzinfo is None:
        since = since.tz_localize("UTC")
    return df[df["created_at"] >= since]


def recent_death_average(
    df: pd.DataFrame,
    batch_id: str,
    window: int = 3,
    min_reports: int = 2,
) -> float | None:
    """
    Mean death count over the `window` most recent reports of a batch.

    Returns None when fewer than `min_reports` reports exist.
    """
    recent = batch_history(df, batch_id).tail(window)
    if len(recent) < min_reports:
        return None
    return float(recent["deaths"].mean())


def trend_slope(series: pd.Series, min_points: int = 4) -> float | None:
    """Least-squares slope per observation; None for short series."""
    values = series.dropna().to_numpy(dtype=float)
    if len(values) < min_points:
        return None
    x = np.arange(len(values), dtype=float)
    slope = float(np.polyfit(x, values, 1)[0])
    # polyfit on a flat series returns ~1e-15, not exactly 0
    return 0.0 if abs(slope) < 1e-9 else slope


def classify_trend(slope: float | None, tolerance: float) -> str:
    """Returns: "unknown" | "rising" | "falling" | "stable"."""
    if slope is None:
        return "unknown"
    if slope > tolerance:
        return "rising"
    if slope < -tolerance:
        return "falling"
    return "stable"


def mortality_trend(
    df: pd.DataFrame,
    batch_id: str,
    window: int,
    min_points: int,
    tolerance: float,
) -> tuple[str, float | None, int]:
    """
    Trend of per-report deaths over the last `window` reports carrying deaths.

    Returns (label, slope, number of reports fitted).
    """
    history = batch_history(df, batch_id)
    deaths = history.loc[history["deaths"] > 0, "deaths"].tail(window)
    slope = trend_slope(deaths, min_points=min_points)
    return classify_trend(slope, tolerance), slope, len(deaths)


def fcr_trend(
    df: pd.DataFrame,
    batch_id: str,
    window: int,
    min_points: int,
    tolerance: float,
) -> tuple[str, float | None, int]:
    """Trend of computed FCR over the last `window` feed/daily reports."""
    history = batch_history(df, batch_id)
    fcr = history.loc[history["report_type"].isin(_FCR_KINDS), "feed_efficiency"]
    fcr = fcr[fcr > 0].tail(window)
    slope = trend_slope(fcr, min_points=min_points)
    return classify_trend(slope, tolerance), slope, len(fcr)
