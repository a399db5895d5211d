"""
src/analytics/health_index.py
──────────────────────────────
Batch health score (HS) and its status label.

HS ∈ [0, 100] where 100 = flawless flock, 0 = flock in crisis.

Banding (single source for every label written to a batch):
  HS ≥ 90 → Excellent
  HS ≥ 70 → Good
  HS ≥ 50 → Fair
  else    → Poor

Mortality-driven score:
  HS = max(0, 100 − mortality_rate × 10)   → saturates at 10 % mortality

Risk level (statistics only, never written to health_status):
  additive points for mortality, status label and batch age.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

import numpy as np

from config.thresholds import HEALTH_BANDS, MORTALITY
from src.data.models import Batch, BatchStatistics, HealthStatus

# ── Rounding ──────────────────────────────────────────────────────────────────


def round_half_away(value: float, places: int = 2) -> float:
    """Round half away from zero (2.345 → 2.35, −2.345 → −2.35).

    Non-finite values are returned unchanged.
    """
    if not math.isfinite(value):
        return float(value)
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def round_score(value: float) -> int:
    """Round to the nearest integer score and clip into [0, 100]."""
    return int(np.clip(round_half_away(value, 0), 0, 100))


# ── Status banding ────────────────────────────────────────────────────────────


def status_for_score(score: float) -> HealthStatus:
    if score >= HEALTH_BANDS.excellent:
        return HealthStatus.EXCELLENT
    if score >= HEALTH_BANDS.good:
        return HealthStatus.GOOD
    if score >= HEALTH_BANDS.fair:
        return HealthStatus.FAIR
    return HealthStatus.POOR


# ── Mortality ─────────────────────────────────────────────────────────────────


def remaining_birds(bird_count: int, total_mortality: int) -> int:
    return max(0, bird_count - total_mortality)


def mortality_rate(total_mortality: int, bird_count: int) -> float:
    """Cumulative deaths as a percentage of the starting population (2 dp)."""
    if bird_count <= 0:
        return 0.0
    return round_half_away(total_mortality / bird_count * 100.0)


def mortality_health_score(rate: float) -> int:
    return round_score(max(0.0, 100.0 - rate * MORTALITY.score_penalty_per_pct))


# ── Feed ──────────────────────────────────────────────────────────────────────


def feed_efficiency(total_feed: float, average_weight: float, birds: int) -> float:
    """Feed consumed over live weight carried (FCR), 0 when no weight is known."""
    total_weight = average_weight * birds
    if total_weight <= 0:
        return 0.0
    return round_half_away(total_feed / total_weight)


# ── Statistics ────────────────────────────────────────────────────────────────


def batch_age_days(start_date: datetime, now: datetime) -> int:
    """Whole days since placement (0 for future start dates)."""
    if start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=UTC)
    return max(0, (now - start_date).days)


def compute_risk_level(rate: float, status: HealthStatus, age_days: int) -> str:
    """Low / Medium / High / Critical from mortality, status and age points."""
    points = 0
    if rate > 5:
        points += 40
    elif rate > 3:
        points += 30
    elif rate > 1:
        points += 20
    elif rate > 0.5:
        points += 10

    points += {
        HealthStatus.POOR: 30,
        HealthStatus.FAIR: 20,
        HealthStatus.GOOD: 10,
    }.get(status, 0)

    if age_days > 50:
        points += 20
    elif age_days > 40:
        points += 15
    elif age_days > 30:
        points += 10

    if points >= 60:
        return "Critical"
    if points >= 40:
        return "High"
    if points >= 20:
        return "Medium"
    return "Low"


def compute_batch_statistics(batch: Batch, now: datetime) -> BatchStatistics:
    """Derived reporting figures for one batch snapshot."""
    age = batch_age_days(batch.start_date, now)
    remaining = remaining_birds(batch.bird_count, batch.total_mortality)
    rate = mortality_rate(batch.total_mortality, batch.bird_count)

    return BatchStatistics(
        batch_id=batch.id,
        computed_at=now,
        days_since_start=age,
        remaining_birds=remaining,
        mortality_rate=rate,
        daily_mortality_rate=round_half_away(rate / age, 3) if age > 0 else 0.0,
        average_daily_feed=round_half_away(batch.feed_used / age) if age > 0 else 0.0,
        total_weight=round_half_away(batch.current_weight * remaining),
        feed_efficiency=batch.feed_efficiency,
        health_score=batch.health_score,
        risk_level=compute_risk_level(rate, batch.health_status, age),
    )


def compute_farm_mortality(batches: list[Batch]) -> float | None:
    """Mean mortality rate over batches with a declared population."""
    rates = [mortality_rate(b.total_mortality, b.bird_count) for b in batches if b.bird_count > 0]
    if not rates:
        return None
    return round_half_away(float(np.mean(rates)))
