"""
src/analytics/calculators.py
────────────────────────────
Metric calculators, one per report kind.

Every calculator is a pure function of (normalized fields, batch snapshot,
timestamp) and returns:
  DerivedMetrics → stored on the report as its audit payload
  BatchPatch     → partial update merged into the batch by the aggregator

Calculators never touch the store and never mutate the batch they receive.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from config.thresholds import (
    ENVIRONMENT,
    HEALTH_CHECK_SCORES,
    OVERALL_HEALTH_FALLBACK_SCORE,
    OVERALL_HEALTH_SCORES,
    VACCINATION_DEFAULT_SCORE,
    VACCINATION_SCORES,
)
from src.analytics.health_index import (
    feed_efficiency,
    mortality_health_score,
    mortality_rate,
    remaining_birds,
    round_half_away,
    status_for_score,
)
from src.data.models import Batch, BatchPatch, DerivedMetrics, ReportType
from src.data.normalizer import NormalizedFields

Calculation = tuple[DerivedMetrics, BatchPatch]
Calculator = Callable[[NormalizedFields, Batch, datetime], Calculation]


# ── Shared sub-calculations ───────────────────────────────────────────────────


def _mortality_totals(deaths: int, batch: Batch) -> tuple[int, int, float]:
    total = batch.total_mortality + deaths
    return total, remaining_birds(batch.bird_count, total), mortality_rate(total, batch.bird_count)


def _environment(fields: NormalizedFields, batch: Batch) -> tuple[float, float]:
    """Temperature and humidity from the report, else the batch, else defaults."""
    if fields.has("temperature"):
        temperature = fields.get("temperature")
    elif batch.temperature is not None:
        temperature = batch.temperature
    else:
        temperature = ENVIRONMENT.default_temperature_c

    if fields.has("humidity"):
        humidity = fields.get("humidity")
    elif batch.humidity is not None:
        humidity = batch.humidity
    else:
        humidity = ENVIRONMENT.default_humidity_pct
    return temperature, humidity


def _weight(fields: NormalizedFields, batch: Batch) -> float:
    weight = fields.get("average_weight") if fields.has("average_weight") else 0.0
    return weight if weight > 0 else batch.current_weight


# ── Calculators ───────────────────────────────────────────────────────────────


def calculate_mortality(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    deaths = fields.get("deaths")
    total, remaining, rate = _mortality_totals(deaths, batch)
    score = mortality_health_score(rate)
    status = status_for_score(score)

    metrics = DerivedMetrics(
        new_mortality=deaths,
        total_mortality=total,
        remaining_birds=remaining,
        original_bird_count=batch.bird_count,
        mortality_rate=rate,
        health_score=score,
        health_status=status,
    )
    patch = BatchPatch(
        total_mortality=total,
        remaining_birds=remaining,
        mortality_rate=rate,
        health_score=score,
        health_status=status,
        last_mortality_update=now,
    )
    return metrics, patch


def calculate_daily(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    """
    Composite report: each section is applied only when its field is present,
    so a partial daily report never overwrites unrelated batch values.
    """
    metrics: dict = {}
    patch: dict = {}
    remaining = batch.remaining_birds

    if fields.has("deaths"):
        deaths = fields.get("deaths")
        total, remaining, rate = _mortality_totals(deaths, batch)
        metrics.update(new_mortality=deaths, total_mortality=total,
                       remaining_birds=remaining, mortality_rate=rate)
        patch.update(total_mortality=total, remaining_birds=remaining,
                     mortality_rate=rate, last_mortality_update=now)

    if fields.has("feed_amount"):
        new_feed = fields.get("feed_amount")
        total_feed = round_half_away(batch.feed_used + new_feed, 3)
        weight = _weight(fields, batch)
        efficiency = feed_efficiency(total_feed, weight, remaining)
        metrics.update(new_feed_used=new_feed, total_feed_used=total_feed,
                       feed_efficiency=efficiency, average_weight=weight)
        patch.update(feed_used=total_feed, feed_efficiency=efficiency)

    if fields.has("overall_health"):
        label = fields.get("overall_health").capitalize()
        score = OVERALL_HEALTH_SCORES.get(label, OVERALL_HEALTH_FALLBACK_SCORE)
        status = status_for_score(score)
        metrics.update(health_score=score, health_status=status)
        patch.update(health_score=score, health_status=status)

    if fields.has("temperature"):
        metrics["temperature"] = patch["temperature"] = fields.get("temperature")
    if fields.has("humidity"):
        metrics["humidity"] = patch["humidity"] = fields.get("humidity")
    if fields.has("average_weight"):
        metrics["average_weight"] = patch["current_weight"] = fields.get("average_weight")

    return DerivedMetrics(**metrics), BatchPatch(**patch)


def calculate_health(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    """Priority chain: the first matching condition sets the score."""
    temperature, humidity = _environment(fields, batch)
    disease = fields.get("disease_detected")
    medication = fields.get("medication_given")
    issues = fields.get("health_issues")

    if disease or medication:
        score = HEALTH_CHECK_SCORES["disease_or_medication"]
    elif issues:
        score = HEALTH_CHECK_SCORES["health_issues"]
    elif temperature >= ENVIRONMENT.temp_high_c or temperature <= ENVIRONMENT.temp_low_c:
        score = HEALTH_CHECK_SCORES["temperature_stress"]
    elif humidity >= ENVIRONMENT.humidity_high_pct or humidity <= ENVIRONMENT.humidity_low_pct:
        score = HEALTH_CHECK_SCORES["humidity_stress"]
    else:
        score = HEALTH_CHECK_SCORES["clear"]
    status = status_for_score(score)

    metrics = DerivedMetrics(
        health_score=score,
        health_status=status,
        temperature=temperature,
        humidity=humidity,
        disease_detected=disease,
        medication_given=medication,
        health_issues=issues,
    )
    patch = BatchPatch(
        health_score=score,
        health_status=status,
        temperature=temperature,
        humidity=humidity,
        last_health_check=now,
    )
    return metrics, patch


def calculate_feed(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    new_feed = fields.get("feed_amount")
    total_feed = round_half_away(batch.feed_used + new_feed, 3)
    weight = _weight(fields, batch)
    total_weight = weight * batch.remaining_birds
    efficiency = feed_efficiency(total_feed, weight, batch.remaining_birds)

    metrics = DerivedMetrics(
        new_feed_used=new_feed,
        total_feed_used=total_feed,
        feed_efficiency=efficiency,
        average_weight=weight,
        total_weight=round_half_away(total_weight),
    )
    patch = BatchPatch(feed_used=total_feed, feed_efficiency=efficiency, current_weight=weight)
    return metrics, patch


def calculate_vaccination(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    new_doses = fields.get("vaccinations")
    total = batch.vaccinations + new_doses
    score = next(
        (s for minimum, s in VACCINATION_SCORES if total >= minimum),
        VACCINATION_DEFAULT_SCORE,
    )
    status = status_for_score(score)

    metrics = DerivedMetrics(
        new_vaccinations=new_doses,
        total_vaccinations=total,
        health_score=score,
        health_status=status,
        vaccination_type=fields.get("vaccination_type") or "Unknown",
    )
    patch = BatchPatch(vaccinations=total, health_score=score, health_status=status)
    return metrics, patch


def calculate_environment(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    temperature, humidity = _environment(fields, batch)
    lighting = fields.get("lighting_hours") if fields.has("lighting_hours") else ENVIRONMENT.default_lighting_hours

    metrics = DerivedMetrics(
        temperature=temperature,
        humidity=humidity,
        ventilation_status=fields.get("ventilation_status") or "Good",
        lighting_hours=lighting,
    )
    return metrics, BatchPatch(temperature=temperature, humidity=humidity)


def record_only(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    """Kinds that are logged in the ledger without touching the batch."""
    return DerivedMetrics(), BatchPatch()


CALCULATORS: dict[ReportType, Calculator] = {
    ReportType.MORTALITY: calculate_mortality,
    ReportType.DAILY: calculate_daily,
    ReportType.HEALTH: calculate_health,
    ReportType.FEED: calculate_feed,
    ReportType.VACCINATION: calculate_vaccination,
    ReportType.ENVIRONMENT: calculate_environment,
    ReportType.EQUIPMENT: record_only,
    ReportType.EMERGENCY: record_only,
}


def calculate(fields: NormalizedFields, batch: Batch, now: datetime) -> Calculation:
    """Dispatch to the calculator registered for the report kind."""
    return CALCULATORS[fields.report_type](fields, batch, now)
