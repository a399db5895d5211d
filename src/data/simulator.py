"""
src/data/simulator.py
─────────────────────
Synthetic demo farm generator.

Generates:
  - DEMO_BATCHES broiler batches placed at staggered ages (12–48 days)
  - One field report per day per batch over the last HISTORY_DAYS
    (daily reports, weekly vaccinations, occasional health checks)
  - One "troubled" batch with elevated mortality, a disease finding and
    a pending emergency report, so alerts and insights have work to do

Design:
  - Reproducible with SIMULATION_SEED for consistent demos
  - Payloads use the field names real forms send (camelCase and snake_case
    mixed) and go through submit_report(), so the ledger is replayable
  - Growth follows a Gompertz curve; daily intake grows linearly with age
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import numpy as np

from config.settings import settings
from src.data.models import Batch, BatchStatus

logger = logging.getLogger(__name__)

# ── Flock model ───────────────────────────────────────────────────────────────

GOMPERTZ = {"asymptote_kg": 3.5, "rate": 0.065, "inflection_day": 22.0}
INTAKE_KG = {"base": 0.015, "per_day": 0.005}    # feed per bird per day
DAILY_DEATH_P = 0.0012                             # baseline daily mortality
TROUBLED_DEATH_P = 0.006
VACCINATION_DAYS = (7, 14, 21)

FARMERS = ["Amina Juma", "Baraka Mwita", "Grace Wanjiru", "Joseph Otieno", "Neema Kimaro"]


@dataclass
class PlannedBatch:
    batch_id: str
    name: str
    farmer_name: str
    bird_count: int
    age_days: int
    troubled: bool = False


def live_weight_kg(age_days: float) -> float:
    g = GOMPERTZ
    return g["asymptote_kg"] * float(np.exp(-np.exp(-g["rate"] * (age_days - g["inflection_day"]))))


def daily_intake_kg(age_days: float) -> float:
    return INTAKE_KG["base"] + INTAKE_KG["per_day"] * age_days


def plan_batches(rng: np.random.Generator, count: int = settings.DEMO_BATCHES) -> list[PlannedBatch]:
    """Stagger batch ages across a grow-out cycle; batch #2 is the troubled one."""
    ages = np.linspace(12, 48, num=max(count, 1)).astype(int) + rng.integers(-2, 3, size=max(count, 1))
    plans = []
    for i in range(count):
        plans.append(PlannedBatch(
            batch_id=f"BATCH-{i + 1:03d}",
            name=f"Batch {chr(ord('A') + i)}",
            farmer_name=FARMERS[i % len(FARMERS)],
            bird_count=int(rng.integers(8, 21)) * 100,
            age_days=int(max(ages[i], 1)),
            troubled=(i == 1),
        ))
    return plans


def _daily_payload(plan: PlannedBatch, age: int, alive: int, rng: np.random.Generator) -> dict:
    p = TROUBLED_DEATH_P if plan.troubled and age > 10 else DAILY_DEATH_P
    deaths = int(rng.binomial(alive, p))
    weight = live_weight_kg(age) * float(rng.normal(1.0, 0.02))
    feed = daily_intake_kg(age) * alive * float(rng.normal(1.0, 0.03))
    health = "Fair" if plan.troubled and age > 10 else str(rng.choice(["Excellent", "Good"], p=[0.7, 0.3]))
    return {
        "mortalityCount": deaths,
        "feedAmount": round(max(feed, 0.0), 1),
        "averageWeight": round(max(weight, 0.0), 3),
        "overallHealth": health,
        "temperature": round(float(rng.normal(30.0, 1.5)), 1),
        "humidity": round(float(rng.normal(62.0, 5.0)), 1),
    }


def generate_reports(
    plan: PlannedBatch,
    rng: np.random.Generator,
    now: datetime,
    days: int = settings.HISTORY_DAYS,
) -> list[tuple[str, dict, dict]]:
    """
    Report stream for one batch, oldest first.

    Returns (report_type, fields, meta) triples ready for submit_report().
    """
    start = now - timedelta(days=plan.age_days)
    first_age = max(0, plan.age_days - days)
    alive = plan.bird_count
    stream: list[tuple[str, dict, dict]] = []

    for age in range(first_age, plan.age_days):
        ts = start + timedelta(days=age, hours=8)
        fields = _daily_payload(plan, age, alive, rng)
        alive = max(0, alive - fields["mortalityCount"])
        stream.append(("daily", fields, {"created_at": ts, "title": f"Day {age} report"}))

        if age in VACCINATION_DAYS:
            stream.append(("vaccination", {"vaccination_count": 1, "vaccine_name": "Newcastle"},
                           {"created_at": ts + timedelta(hours=2), "urgency_level": "normal"}))
        if age % 10 == 5:
            stream.append(("health", {"temperature": fields["temperature"], "humidity": fields["humidity"]},
                           {"created_at": ts + timedelta(hours=4), "urgency_level": "low"}))

    if plan.troubled and plan.age_days > 10:
        ts = now - timedelta(hours=6)
        stream.append(("health", {"diseaseDetected": "yes", "healthIssues": ["coughing", "lethargy"]},
                       {"created_at": ts, "urgency_level": "high", "title": "Respiratory signs in house 2"}))
        stream.append(("emergency", {"description": "Sudden losses overnight"},
                       {"created_at": ts + timedelta(hours=1), "title": "Overnight losses"}))
    return stream


def seed_demo_farm(
    seed: int = settings.SIMULATION_SEED,
    days: int = settings.HISTORY_DAYS,
    count: int = settings.DEMO_BATCHES,
    now: datetime | None = None,
) -> list[Batch]:
    """Register the demo batches and replay their report history."""
    # Import here to avoid circular deps
    from src.data import store
    from src.engine.aggregator import register_batch, submit_report

    rng = np.random.default_rng(seed)
    now = now or datetime.now(tz=UTC).replace(minute=0, second=0, microsecond=0)
    batches: list[Batch] = []

    for plan in plan_batches(rng, count):
        register_batch(
            name=plan.name,
            bird_count=plan.bird_count,
            batch_id=plan.batch_id,
            farmer_name=plan.farmer_name,
            start_date=now - timedelta(days=plan.age_days),
            status=BatchStatus.ACTIVE,
            now=now,
        )
        stream = generate_reports(plan, rng, now, days)
        for report_type, fields, meta in stream:
            submit_report(plan.batch_id, report_type, fields, meta=meta, now=meta["created_at"])
        batches.append(store.fetch_batch(plan.batch_id))
        logger.info("Seeded %s with %d reports", plan.batch_id, len(stream))

    return batches
