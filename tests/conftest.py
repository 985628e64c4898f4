"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the Asset Health Engine test suite.
"""
import itertools
import os
from datetime import datetime, timedelta, timezone

import pytest

# Use in-memory SQLite for tests
os.environ.setdefault("DATABASE_URL", ":memory:")
os.environ.setdefault("HISTORY_DAYS", "2")
os.environ.setdefault("SIMULATION_SEED", "42")


@pytest.fixture(autouse=True)
def fresh_db():
    """Every test gets an empty schema."""
    from assethealth.data import store
    store.reset_db()
    store.initialize_db()
    yield
    store.reset_db()


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_device():
    from assethealth.data import store
    from assethealth.data.models import Device

    def _make(device_type="battery_storage", site_id=1, name=None, capacity=None, settings=None):
        return store.insert_device(Device(
            name=name or f"{device_type} unit",
            type=device_type,
            capacity=capacity,
            site_id=site_id,
            settings=settings or {},
        ))

    return _make


@pytest.fixture
def battery_device(make_device):
    return make_device("battery_storage", capacity=10.0)


@pytest.fixture
def solar_device(make_device):
    year = datetime.now(tz=timezone.utc).year
    return make_device("solar_pv", capacity=5.0, settings={"installationYear": year - 2})


@pytest.fixture
def add_readings(now):
    """Insert `count` hourly readings ending at `end` (newest last)."""
    from assethealth.data import store
    from assethealth.data.models import Reading

    def _add(device_id, count=1, end=None, **fields):
        end = end or now
        readings = [
            Reading(device_id=device_id, timestamp=end - timedelta(hours=count - 1 - i), **fields)
            for i in range(count)
        ]
        store.insert_readings(readings)
        return readings

    return _add


@pytest.fixture
def add_snapshot(now):
    """Insert snapshots with strictly increasing timestamps."""
    from assethealth.data import store
    from assethealth.data.models import HealthMetricsSnapshot

    tick = itertools.count()

    def _add(device_id, score=95.0, **fields):
        fields.setdefault("timestamp", now + timedelta(minutes=next(tick)))
        fields.setdefault("remaining_useful_life", 1000)
        return store.insert_health_metrics(HealthMetricsSnapshot(
            device_id=device_id, overall_health_score=score, **fields,
        ))

    return _add
