"""
tests/test_thresholds.py
─────────────────────────
Tests for the threshold engine.
"""
import pytest

from assethealth.analytics.thresholds import evaluate_snapshot, evaluate_thresholds, threshold_triggered
from assethealth.data import store
from assethealth.data.models import HealthMetricsSnapshot, MaintenanceThreshold


def _threshold(direction, warning, secondary=None, metric="overallHealthScore", **kwargs):
    return MaintenanceThreshold(
        device_id=1, metric_name=metric, direction=direction,
        warning_threshold=warning, secondary_threshold=secondary, **kwargs,
    )


class TestThresholdTriggered:
    def test_above_is_strict(self):
        t = _threshold("above", 40.0)
        assert threshold_triggered(41.0, t)
        assert not threshold_triggered(40.0, t)

    def test_below_is_strict(self):
        t = _threshold("below", 40.0)
        assert threshold_triggered(39.9, t)
        assert not threshold_triggered(40.0, t)

    def test_equal_is_exact(self):
        t = _threshold("equal", 0.3)
        assert threshold_triggered(0.3, t)
        assert not threshold_triggered(0.1 + 0.2, t)

    def test_between_is_inclusive(self):
        t = _threshold("between", 10.0, 20.0)
        assert threshold_triggered(10.0, t)
        assert threshold_triggered(20.0, t)
        assert threshold_triggered(15.0, t)
        assert not threshold_triggered(9.99, t)
        assert not threshold_triggered(20.01, t)

    def test_between_without_upper_bound_raises(self):
        with pytest.raises(ValueError):
            threshold_triggered(15.0, _threshold("between", 10.0))


class TestEvaluateSnapshot:
    @pytest.fixture
    def snapshot(self, now):
        return HealthMetricsSnapshot(
            device_id=1, timestamp=now, overall_health_score=41.0,
            remaining_useful_life=100, operating_temperature=35.0,
        )

    def test_breach_carries_value_and_default_message(self, snapshot):
        breaches = evaluate_snapshot(snapshot, [_threshold("above", 40.0)])
        assert len(breaches) == 1
        assert breaches[0].value == 41.0
        assert breaches[0].message == "overallHealthScore threshold exceeded"

    def test_configured_message(self, snapshot):
        t = _threshold("above", 30.0, metric="operating_temperature", alert_message="Too hot")
        assert evaluate_snapshot(snapshot, [t])[0].message == "Too hot"

    def test_missing_metric_skipped(self, snapshot):
        assert evaluate_snapshot(snapshot, [_threshold("above", 0.0, metric="internalResistance")]) == []

    def test_disabled_threshold_skipped(self, snapshot):
        assert evaluate_snapshot(snapshot, [_threshold("above", 40.0, enabled=False)]) == []

    def test_misconfigured_between_skipped_others_evaluated(self, snapshot):
        thresholds = [_threshold("between", 0.0), _threshold("below", 50.0)]
        breaches = evaluate_snapshot(snapshot, thresholds)
        assert [b.threshold.direction.value for b in breaches] == ["below"]


class TestEvaluateThresholds:
    def test_no_snapshot(self, battery_device):
        store.insert_threshold(_threshold("above", 0.0).model_copy(update={"device_id": battery_device.id}))
        assert evaluate_thresholds(battery_device.id) == []

    def test_uses_latest_snapshot_and_enabled_thresholds(self, battery_device, add_snapshot):
        add_snapshot(battery_device.id, score=95.0)
        add_snapshot(battery_device.id, score=41.0)
        store.insert_threshold(MaintenanceThreshold(
            device_id=battery_device.id, metric_name="overallHealthScore",
            direction="below", warning_threshold=50.0,
        ))
        store.insert_threshold(MaintenanceThreshold(
            device_id=battery_device.id, metric_name="overallHealthScore",
            direction="below", warning_threshold=60.0, enabled=False,
        ))
        breaches = evaluate_thresholds(battery_device.id)
        assert len(breaches) == 1
        assert breaches[0].value == 41.0
        assert breaches[0].threshold.id is not None
