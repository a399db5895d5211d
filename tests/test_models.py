"""
tests/test_models.py
─────────────────────
Tests for Pydantic data models.
"""

import pytest
from pydantic import ValidationError

from src.data.models import (
    Alert,
    Batch,
    BatchPatch,
    BatchStatus,
    DerivedMetrics,
    HealthStatus,
    Report,
    ReportStatus,
    ReportType,
    UrgencyLevel,
)


class TestBatch:
    def test_defaults(self, make_batch):
        batch = make_batch()
        assert batch.status == BatchStatus.ACTIVE
        assert batch.health_score == 100
        assert batch.health_status == HealthStatus.EXCELLENT
        assert batch.version == 0

    def test_health_score_upper_bound(self, make_batch):
        with pytest.raises(ValidationError):
            make_batch(health_score=101)

    def test_negative_bird_count_rejected(self, make_batch):
        with pytest.raises(ValidationError):
            make_batch(bird_count=-1)

    def test_temperature_may_be_negative(self, make_batch):
        assert make_batch(temperature=-4.0).temperature == -4.0

    def test_status_from_string(self, make_batch):
        assert make_batch(status="Completed").status == BatchStatus.COMPLETED

    def test_json_round_trip(self, make_batch):
        batch = make_batch(total_mortality=5, remaining_birds=995)
        restored = Batch.model_validate_json(batch.model_dump_json())
        assert restored == batch


class TestBatchPatch:
    def test_changes_only_set_fields(self):
        patch = BatchPatch(feed_used=10.0, health_status=HealthStatus.GOOD)
        assert patch.changes() == {"feed_used": 10.0, "health_status": HealthStatus.GOOD}

    def test_empty(self):
        assert BatchPatch().is_empty()


class TestDerivedMetrics:
    def test_audit_payload_is_json_ready(self):
        metrics = DerivedMetrics(health_score=80, health_status=HealthStatus.GOOD, mortality_rate=2.0)
        assert metrics.audit_payload() == {
            "health_score": 80,
            "health_status": "Good",
            "mortality_rate": 2.0,
        }


class TestReport:
    def test_defaults(self, now):
        report = Report(id="r1", batch_id="B-001", report_type="mortality", created_at=now)
        assert report.report_type == ReportType.MORTALITY
        assert report.status == ReportStatus.PENDING
        assert report.urgency_level == UrgencyLevel.NORMAL
        assert report.fields == {}

    def test_unknown_type_rejected(self, now):
        with pytest.raises(ValidationError):
            Report(id="r1", batch_id="B-001", report_type="weather", created_at=now)


class TestAlert:
    def test_severity_enum(self, now):
        alert = Alert(key="poor-fcr:B-001", rule_id="poor-fcr", severity="warning",
                      title="t", message="m", timestamp=now)
        assert alert.severity.value == "warning"
        assert not alert.acknowledged
        assert not alert.dismissed
