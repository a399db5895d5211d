"""
tests/test_aggregator.py
────────────────────────
Tests for report submission and batch lifecycle operations.
"""

import decimal
from datetime import timedelta

import pytest

from src.data import store
from src.data.errors import ConcurrencyError, NotFoundError, PersistenceError, ValidationError
from src.data.models import BatchStatus, HealthStatus, ReportType, UrgencyLevel
from src.engine import aggregator
from src.engine.aggregator import (
    complete_batch,
    edit_batch,
    parse_report_type,
    rebuild_batch,
    register_batch,
    submit_report,
)


class TestParseReportType:
    def test_case_insensitive(self):
        assert parse_report_type(" Mortality ") == ReportType.MORTALITY

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_report_type("weather")


class TestSubmitValidation:
    def test_unknown_kind_writes_nothing(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "weather", {"mortalityCount": 3})
        assert store.query_batch_reports("B-001") == []

    def test_missing_required_field(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "mortality", {"notes": "none today"})
        assert store.query_batch_reports("B-001") == []

    def test_negative_count_rejected(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "mortality", {"mortalityCount": -5})

    def test_negative_feed_rejected(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "daily", {"feedAmount": -1})

    def test_out_of_range_count_rejected(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "mortality", {"mortalityCount": "1e20"})
        assert store.query_batch_reports("B-001") == []
        assert store.fetch_batch("B-001").total_mortality == 0

    def test_extreme_weight_rejected_before_write(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "daily", {"averageWeight": 1e306})
        assert store.query_batch_reports("B-001") == []
        assert store.fetch_batch("B-001").current_weight == registered_batch.current_weight

    def test_negative_temperature_within_range_allowed(self, registered_batch, now):
        result = submit_report("B-001", "environment", {"temperature": -5}, now=now)
        assert result.batch.temperature == -5

    def test_fields_must_be_mapping(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "daily", ["mortalityCount", 3])

    def test_invalid_urgency(self, registered_batch):
        with pytest.raises(ValidationError):
            submit_report("B-001", "daily", {}, meta={"urgency_level": "panic"})

    def test_unknown_batch(self, db):
        with pytest.raises(NotFoundError):
            submit_report("NOPE", "mortality", {"mortalityCount": 3})
        assert store.query_batch_reports("NOPE") == []


class TestSubmitReport:
    def test_mortality_report_updates_batch(self, registered_batch, now):
        result = submit_report("B-001", "mortality", {"mortalityCount": 20}, now=now)
        assert result.changed
        assert result.batch.total_mortality == 20
        assert result.batch.remaining_birds == 980
        assert result.batch.mortality_rate == 2.0
        assert result.batch.health_score == 80
        assert result.batch.health_status == HealthStatus.GOOD
        assert result.batch.version == registered_batch.version + 1

        stored = store.fetch_batch("B-001")
        assert stored == result.batch

    def test_report_persisted_with_audit_payload(self, registered_batch, now):
        result = submit_report("B-001", "mortality", {"deathCount": 20}, now=now)
        [report] = store.query_batch_reports("B-001")
        assert report.id == result.report.id
        assert report.fields == {"deathCount": 20}
        assert report.processed_data["total_mortality"] == 20
        assert report.processed_data["health_status"] == "Good"
        assert report.batch_updated

    def test_default_urgency_by_kind(self, registered_batch, now):
        assert submit_report("B-001", "mortality", {"mortalityCount": 1}, now=now).report.urgency_level == UrgencyLevel.HIGH
        assert submit_report("B-001", "emergency", {}, now=now).report.urgency_level == UrgencyLevel.CRITICAL
        assert submit_report("B-001", "daily", {}, now=now).report.urgency_level == UrgencyLevel.NORMAL

    def test_meta_overrides(self, registered_batch, now):
        created = now - timedelta(hours=3)
        result = submit_report(
            "B-001", "health", {}, now=now,
            meta={"urgency_level": "LOW", "title": "Weekly check", "created_at": created.isoformat()},
        )
        assert result.report.urgency_level == UrgencyLevel.LOW
        assert result.report.title == "Weekly check"
        assert result.report.created_at == created
        assert result.batch.last_health_check == created

    def test_record_only_report_is_unchanged(self, registered_batch, now):
        result = submit_report("B-001", "equipment", {"note": "fan repaired"}, now=now)
        assert not result.changed
        assert not result.report.batch_updated
        assert result.batch.version == registered_batch.version
        assert len(store.query_batch_reports("B-001")) == 1

    def test_temperature_only_daily_keeps_counters(self, registered_batch, now):
        submit_report("B-001", "feed", {"feedAmount": 50, "averageWeight": 2.0}, now=now)
        submit_report("B-001", "vaccination", {"vaccinationCount": 1}, now=now)
        submit_report("B-001", "mortality", {"mortalityCount": 20}, now=now)
        before = store.fetch_batch("B-001")

        result = submit_report("B-001", "daily", {"temperature": 33}, now=now)
        after = result.batch
        assert after.temperature == 33.0
        assert after.feed_used == before.feed_used
        assert after.total_mortality == before.total_mortality
        assert after.vaccinations == before.vaccinations
        assert after.health_score == before.health_score

    def test_statistics_refreshed(self, registered_batch, now):
        submit_report("B-001", "mortality", {"mortalityCount": 20}, now=now)
        stats = store.get_batch_statistics("B-001")
        assert stats is not None
        assert stats.mortality_rate == 2.0
        assert stats.days_since_start == 20

    def test_statistics_failure_is_swallowed(self, registered_batch, now, monkeypatch):
        def broken(_stats):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "save_batch_statistics", broken)
        result = submit_report("B-001", "mortality", {"mortalityCount": 3}, now=now)
        assert result.batch.total_mortality == 3

    def test_unexpected_statistics_error_does_not_fail_submission(self, registered_batch, now, monkeypatch):
        def broken(_batch, _now):
            raise decimal.InvalidOperation("cannot quantize")

        monkeypatch.setattr(aggregator, "compute_batch_statistics", broken)
        result = submit_report("B-001", "mortality", {"mortalityCount": 3}, now=now)
        assert result.batch.total_mortality == 3
        assert len(store.query_batch_reports("B-001")) == 1


class TestConcurrency:
    def test_conflict_is_retried(self, registered_batch, now, monkeypatch):
        real = store.record_submission
        calls = {"n": 0}

        def flaky(report, batch=None, expected_version=None):
            calls["n"] += 1
            if calls["n"] == 1:
                # another writer lands first
                other = store.fetch_batch("B-001")
                store.persist_batch(other.model_copy(update={"total_mortality": 10}), other.version)
            return real(report, batch, expected_version)

        monkeypatch.setattr(store, "record_submission", flaky)
        result = submit_report("B-001", "mortality", {"mortalityCount": 5}, now=now)
        assert calls["n"] == 2
        assert result.batch.total_mortality == 15
        assert len(store.query_batch_reports("B-001")) == 1

    def test_gives_up_after_max_attempts(self, registered_batch, now, monkeypatch):
        def always_conflict(report, batch=None, expected_version=None):
            raise ConcurrencyError("stale")

        monkeypatch.setattr(store, "record_submission", always_conflict)
        with pytest.raises(PersistenceError):
            submit_report("B-001", "mortality", {"mortalityCount": 5}, now=now)

    def test_stale_version_rejected_by_store(self, registered_batch):
        store.persist_batch(registered_batch, registered_batch.version)
        with pytest.raises(ConcurrencyError):
            store.persist_batch(registered_batch, registered_batch.version)


class TestBatchLifecycle:
    def test_register_initialises_derived_fields(self, registered_batch):
        assert registered_batch.remaining_birds == 1000
        assert registered_batch.mortality_rate == 0.0
        assert registered_batch.health_status == HealthStatus.EXCELLENT

    def test_register_duplicate_id(self, registered_batch):
        with pytest.raises(ValidationError):
            register_batch(name="Again", bird_count=10, batch_id="B-001")

    def test_register_negative_population(self, db):
        with pytest.raises(ValidationError):
            register_batch(name="Bad", bird_count=-10)

    def test_edit_bird_count_rederives(self, registered_batch, now):
        submit_report("B-001", "mortality", {"mortalityCount": 20}, now=now)
        edited = edit_batch("B-001", {"bird_count": 500}, now=now)
        assert edited.remaining_birds == 480
        assert edited.mortality_rate == 4.0

    def test_edit_rejects_ledger_fields(self, registered_batch):
        with pytest.raises(ValidationError):
            edit_batch("B-001", {"total_mortality": 0})

    def test_edit_unknown_batch(self, db):
        with pytest.raises(NotFoundError):
            edit_batch("NOPE", {"name": "x"})

    def test_complete_batch(self, registered_batch, now):
        batch = complete_batch("B-001", now=now)
        assert batch.status == BatchStatus.COMPLETED
        assert store.query_all_active_batches() == []

    def test_register_oversized_flock(self, db):
        with pytest.raises(ValidationError):
            register_batch(name="Huge", bird_count=10**20)
        assert store.query_all_batches() == []

    def test_completed_batch_cannot_be_reopened(self, registered_batch, now):
        complete_batch("B-001", now=now)
        for status in (BatchStatus.ACTIVE, BatchStatus.PLANNING):
            with pytest.raises(ValidationError):
                edit_batch("B-001", {"status": status}, now=now)
        assert store.fetch_batch("B-001").status == BatchStatus.COMPLETED

    def test_completed_batch_can_still_be_renamed(self, registered_batch, now):
        complete_batch("B-001", now=now)
        batch = edit_batch("B-001", {"name": "Batch A (sold)"}, now=now)
        assert batch.name == "Batch A (sold)"
        assert batch.status == BatchStatus.COMPLETED


class TestRebuild:
    def _submit_history(self, now):
        submit_report("B-001", "mortality", {"mortalityCount": 12},
                      meta={"created_at": now - timedelta(days=3)}, now=now)
        submit_report("B-001", "feed", {"feedAmount": 80, "averageWeight": 1.2},
                      meta={"created_at": now - timedelta(days=2)}, now=now)
        submit_report("B-001", "vaccination", {"vaccinationCount": 1},
                      meta={"created_at": now - timedelta(days=1)}, now=now)
        submit_report("B-001", "daily", {"mortalityCount": 8, "temperature": 31},
                      meta={"created_at": now}, now=now)

    def test_rebuild_matches_incremental_state(self, registered_batch, now):
        self._submit_history(now)
        current = store.fetch_batch("B-001")
        rebuilt = rebuild_batch("B-001")
        assert rebuilt.model_dump(exclude={"version"}) == current.model_dump(exclude={"version"})

    def test_rebuild_repairs_drift(self, registered_batch, now):
        self._submit_history(now)
        drifted = store.fetch_batch("B-001")
        store.persist_batch(drifted.model_copy(update={"total_mortality": 999}), drifted.version)

        preview = rebuild_batch("B-001")
        assert preview.total_mortality == 20
        assert store.fetch_batch("B-001").total_mortality == 999

        repaired = rebuild_batch("B-001", persist=True, now=now)
        assert repaired.total_mortality == 20
        assert store.fetch_batch("B-001").total_mortality == 20
        assert store.fetch_batch("B-001").remaining_birds == 980

    def test_rebuild_unknown_batch(self, db):
        with pytest.raises(NotFoundError):
            rebuild_batch("NOPE")


def test_module_exposes_default_urgency_table():
    assert aggregator.DEFAULT_URGENCY[ReportType.EMERGENCY] == UrgencyLevel.CRITICAL
