"""
src/data/models.py
──────────────────
Pydantic v2 data models for batches, reports, derived metrics, alerts,
and insights.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from config.alerts import AlertSeverity, InsightPriority, InsightType


class HealthStatus(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class BatchStatus(str, Enum):
    PLANNING = "Planning"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class ReportType(str, Enum):
    DAILY = "daily"
    MORTALITY = "mortality"
    HEALTH = "health"
    FEED = "feed"
    VACCINATION = "vaccination"
    ENVIRONMENT = "environment"
    EQUIPMENT = "equipment"
    EMERGENCY = "emergency"


class UrgencyLevel(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(str, Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    RESOLVED = "Resolved"


class Batch(BaseModel):
    id: str
    name: str = ""
    farmer_name: str | None = None
    bird_count: int = Field(ge=0)
    total_mortality: int = Field(default=0, ge=0)
    remaining_birds: int = Field(default=0, ge=0)
    mortality_rate: float = Field(default=0.0, ge=0.0)
    health_score: int = Field(default=100, ge=0, le=100)
    health_status: HealthStatus = HealthStatus.EXCELLENT
    feed_used: float = Field(default=0.0, ge=0.0)
    feed_efficiency: float = Field(default=0.0, ge=0.0)
    current_weight: float = Field(default=0.0, ge=0.0)
    vaccinations: int = Field(default=0, ge=0)
    temperature: float | None = None
    humidity: float | None = None
    status: BatchStatus = BatchStatus.ACTIVE
    start_date: datetime
    last_mortality_update: datetime | None = None
    last_health_check: datetime | None = None
    version: int = Field(default=0, ge=0)


class BatchPatch(BaseModel):
    """Partial batch update; only fields that were set are applied."""

    total_mortality: int | None = Field(default=None, ge=0)
    remaining_birds: int | None = Field(default=None, ge=0)
    mortality_rate: float | None = Field(default=None, ge=0.0)
    health_score: int | None = Field(default=None, ge=0, le=100)
    health_status: HealthStatus | None = None
    feed_used: float | None = Field(default=None, ge=0.0)
    feed_efficiency: float | None = Field(default=None, ge=0.0)
    current_weight: float | None = Field(default=None, ge=0.0)
    vaccinations: int | None = Field(default=None, ge=0)
    temperature: float | None = None
    humidity: float | None = None
    last_mortality_update: datetime | None = None
    last_health_check: datetime | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def is_empty(self) -> bool:
        return not self.changes()


class DerivedMetrics(BaseModel):
    """Calculator output stored on the report as its audit payload."""

    new_mortality: int | None = None
    total_mortality: int | None = None
    remaining_birds: int | None = None
    original_bird_count: int | None = None
    mortality_rate: float | None = None
    health_score: int | None = None
    health_status: HealthStatus | None = None
    new_feed_used: float | None = None
    total_feed_used: float | None = None
    feed_efficiency: float | None = None
    average_weight: float | None = None
    total_weight: float | None = None
    new_vaccinations: int | None = None
    total_vaccinations: int | None = None
    vaccination_type: str | None = None
    temperature: float | None = None
    humidity: float | None = None
    disease_detected: bool | None = None
    medication_given: bool | None = None
    health_issues: list[str] | None = None
    ventilation_status: str | None = None
    lighting_hours: float | None = None

    def audit_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Report(BaseModel):
    id: str
    batch_id: str
    report_type: ReportType
    fields: dict[str, Any] = Field(default_factory=dict)
    processed_data: dict[str, Any] = Field(default_factory=dict)
    urgency_level: UrgencyLevel = UrgencyLevel.NORMAL
    status: ReportStatus = ReportStatus.PENDING
    title: str = ""
    batch_updated: bool = False
    created_at: datetime


class SubmissionResult(BaseModel):
    report: Report
    batch: Batch
    batch_patch: BatchPatch
    derived_metrics: DerivedMetrics
    changed: bool


class BatchStatistics(BaseModel):
    batch_id: str
    computed_at: datetime
    days_since_start: int = Field(ge=0)
    remaining_birds: int = Field(ge=0)
    mortality_rate: float = Field(ge=0.0)
    daily_mortality_rate: float = Field(ge=0.0)
    average_daily_feed: float = Field(ge=0.0)
    total_weight: float = Field(ge=0.0)
    feed_efficiency: float = Field(ge=0.0)
    health_score: int = Field(ge=0, le=100)
    risk_level: str


class Alert(BaseModel):
    key: str
    rule_id: str
    batch_id: str | None = None
    batch_name: str = ""
    severity: AlertSeverity
    title: str
    message: str
    value: float | None = None
    threshold: float | None = None
    timestamp: datetime
    acknowledged: bool = False
    dismissed: bool = False


class Insight(BaseModel):
    key: str
    rule_id: str
    insight_type: InsightType
    category: str
    title: str
    description: str
    recommendation: str
    priority: InsightPriority
    affected_batches: list[str] = Field(default_factory=list)
    batch_id: str | None = None
    report_id: str | None = None
    actionable: bool = True
    timestamp: datetime
    dismissed: bool = False
