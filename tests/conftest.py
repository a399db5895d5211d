"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the Poultry Batch Monitor test suite.
"""
import os
import uuid
import pytest
import numpy as np
from datetime import datetime, timedelta, timezone

# Use in-memory SQLite for tests
os.environ.setdefault("DATABASE_URL", ":memory:")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("HISTORY_DAYS", "7")
os.environ.setdefault("SIMULATION_SEED", "42")
os.environ.setdefault("DEFAULT_LANG", "en")


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_batch(now):
    """Factory for in-memory batches (not persisted)."""
    from src.data.models import Batch

    def _make(**overrides) -> Batch:
        data = {
            "id": "B-001",
            "name": "Batch A",
            "farmer_name": "Amina Juma",
            "bird_count": 1000,
            "remaining_birds": 1000,
            "start_date": now - timedelta(days=20),
        }
        data.update(overrides)
        return Batch(**data)

    return _make


@pytest.fixture
def make_report(now):
    """Factory for in-memory reports (not persisted)."""
    from src.data.models import Report

    def _make(batch_id: str = "B-001", report_type: str = "daily", fields: dict | None = None,
              hours_ago: float = 1.0, **overrides) -> Report:
        data = {
            "id": str(uuid.uuid4()),
            "batch_id": batch_id,
            "report_type": report_type,
            "fields": fields or {},
            "created_at": now - timedelta(hours=hours_ago),
        }
        data.update(overrides)
        return Report(**data)

    return _make


@pytest.fixture
def db():
    """Empty record store; wiped again after the test."""
    from src.data import store

    store.clear_all()
    yield store
    store.clear_all()


@pytest.fixture
def registered_batch(db, now):
    """A persisted 1000-bird Active batch placed 20 days before `now`."""
    from src.engine.aggregator import register_batch

    return register_batch(
        name="Batch A",
        bird_count=1000,
        batch_id="B-001",
        farmer_name="Amina Juma",
        start_date=now - timedelta(days=20),
        now=now,
    )
