"""
config/thresholds.py
────────────────────
Flock-management thresholds used by the calculators and scanners.

Broiler reference points:
  Mortality  : < 3 % excellent, 5 % target ceiling, > 10 % action required
  FCR        : < 1.7 excellent, 1.8 target, > 2.0 poor, > 2.2 alarming
  Harvest    : 35–42 day market window, > 45 days overdue
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class HealthBands:
    """Lower bounds of each health-status band (score 0–100)."""
    excellent: int = 90
    good: int = 70
    fair: int = 50
    # < fair → Poor


@dataclass(frozen=True)
class MortalityThresholds:
    alert_critical: float = 15.0     # > → critical alert
    alert_warning: float = 10.0      # > → warning alert
    insight_critical: float = 10.0
    insight_warning: float = 5.0
    insight_excellent: float = 3.0   # < → success insight
    farm_excellent: float = 5.0      # farm-wide average
    score_penalty_per_pct: float = 10.0


@dataclass(frozen=True)
class FeedThresholds:
    alert_poor: float = 2.2
    insight_poor: float = 2.0
    insight_excellent: float = 1.7


@dataclass(frozen=True)
class HarvestWindow:
    opens_day: int = 35
    closes_day: int = 42
    overdue_after_day: int = 45


@dataclass(frozen=True)
class EnvironmentLimits:
    default_temperature_c: float = 30.0
    default_humidity_pct: float = 65.0
    temp_high_c: float = 35.0        # ≥ → heat stress
    temp_low_c: float = 25.0         # ≤ → cold stress
    humidity_high_pct: float = 80.0
    humidity_low_pct: float = 40.0
    default_lighting_hours: float = 16.0


@dataclass(frozen=True)
class ReportingThresholds:
    spike_min_reports: int = 2
    spike_avg_deaths: float = 20.0
    min_reports_per_batch: int = 2
    cadence_window_days: int = 7
    recent_window_hours: int = 24
    single_report_deaths: int = 20


@dataclass(frozen=True)
class TrendThresholds:
    min_points: int = 4
    report_window: int = 8           # most recent reports fitted
    mortality_slope: float = 1.0     # deaths per report
    fcr_slope: float = 0.05          # FCR units per report


@dataclass(frozen=True)
class InputLimits:
    """Largest value accepted for a single reported count or amount."""
    max_count: int = 10_000_000          # birds, deaths, doses
    max_amount: float = 1_000_000.0      # kg of feed, kg live weight, °C, %


HEALTH_BANDS = HealthBands()
MORTALITY = MortalityThresholds()
FEED = FeedThresholds()
HARVEST = HarvestWindow()
ENVIRONMENT = EnvironmentLimits()
REPORTING = ReportingThresholds()
TRENDS = TrendThresholds()
INPUT_LIMITS = InputLimits()

# Score reported by a health check, by condition (first match wins)
HEALTH_CHECK_SCORES: dict[str, int] = {
    "disease_or_medication": 30,
    "health_issues": 60,
    "temperature_stress": 70,
    "humidity_stress": 80,
    "clear": 100,
}

# Score implied by the overall-health label on a daily report
OVERALL_HEALTH_SCORES: dict[str, int] = {
    "Excellent": 100,
    "Good": 80,
    "Fair": 60,
}
OVERALL_HEALTH_FALLBACK_SCORE = 40

# (minimum cumulative vaccinations, score), checked top-down
VACCINATION_SCORES: list[tuple[int, int]] = [
    (6, 100),
    (3, 90),
    (1, 80),
]
VACCINATION_DEFAULT_SCORE = 100
