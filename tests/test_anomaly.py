"""
tests/test_anomaly.py
─────────────────────
Tests for rule-based anomaly detection on health snapshots.
"""
import pandas as pd
import pytest

from assethealth.analytics.anomaly import (
    AnomalyRule,
    baseline_mean,
    detect_anomalies,
    evaluate_rules,
)


class TestBaselineMean:
    def test_ignores_missing_values(self):
        df = pd.DataFrame({"capacity_fading": [1.0, None, 3.0]})
        assert baseline_mean(df, "capacity_fading") == pytest.approx(2.0)

    def test_zero_counts_as_present(self):
        df = pd.DataFrame({"efficiency_ratio": [0.0, 1.0]})
        assert baseline_mean(df, "efficiency_ratio") == pytest.approx(0.5)

    def test_no_values(self):
        assert baseline_mean(pd.DataFrame({"x": [None, None]}), "x") == 0.0
        assert baseline_mean(pd.DataFrame(), "x") == 0.0


class TestDetectAnomaliesMissingData:
    def test_no_snapshot(self, battery_device):
        result = detect_anomalies(battery_device.id)
        assert result.has_anomaly is False
        assert result.anomaly_type is None

    def test_no_device(self, add_snapshot):
        add_snapshot(999, score=60.0, operating_temperature=50.0)
        assert detect_anomalies(999).has_anomaly is False

    def test_unmodeled_type(self, make_device, add_snapshot):
        device = make_device("heat_pump")
        add_snapshot(device.id, score=40.0, operating_temperature=60.0)
        assert detect_anomalies(device.id).has_anomaly is False


class TestBatteryRules:
    def test_healthy_battery(self, battery_device, add_snapshot):
        for _ in range(5):
            add_snapshot(battery_device.id, operating_temperature=25.0, capacity_fading=0.5)
        assert detect_anomalies(battery_device.id).has_anomaly is False

    def test_high_temperature(self, battery_device, add_snapshot):
        add_snapshot(battery_device.id, score=77.5, operating_temperature=45.0)
        result = detect_anomalies(battery_device.id)
        assert result.has_anomaly
        assert result.anomaly_type == "high_temperature"
        assert result.confidence == 95
        assert result.message == "Battery operating at high temperature"

    def test_freezing_temperature_is_detected(self, battery_device, add_snapshot):
        add_snapshot(battery_device.id, score=88.0, operating_temperature=0.0)
        result = detect_anomalies(battery_device.id)
        assert result.anomaly_type == "low_temperature"
        assert result.confidence == 90

    def test_capacity_degradation_against_baseline(self, battery_device, add_snapshot):
        for _ in range(9):
            add_snapshot(battery_device.id, capacity_fading=1.0)
        add_snapshot(battery_device.id, capacity_fading=3.0)
        result = detect_anomalies(battery_device.id)
        assert result.anomaly_type == "capacity_degradation"
        assert result.confidence == 85

    def test_small_fading_is_not_degradation(self, battery_device, add_snapshot):
        add_snapshot(battery_device.id, capacity_fading=0.0)
        add_snapshot(battery_device.id, capacity_fading=0.9)
        assert detect_anomalies(battery_device.id).has_anomaly is False

    def test_baseline_limited_to_recent_window(self, battery_device, add_snapshot):
        # Old high values fall outside the 10-snapshot window
        for _ in range(20):
            add_snapshot(battery_device.id, internal_resistance=10.0)
        for _ in range(9):
            add_snapshot(battery_device.id, internal_resistance=1.0)
        add_snapshot(battery_device.id, internal_resistance=2.0)
        result = detect_anomalies(battery_device.id)
        assert result.anomaly_type == "internal_resistance"
        assert result.confidence == 75

    def test_highest_confidence_leads(self, battery_device, add_snapshot):
        for _ in range(9):
            add_snapshot(battery_device.id, capacity_fading=1.0)
        add_snapshot(battery_device.id, score=70.0, capacity_fading=3.0, operating_temperature=42.0)
        result = detect_anomalies(battery_device.id)
        assert result.anomaly_type == "high_temperature"
        assert result.message == "Battery operating at high temperature"
        assert [f.anomaly_type for f in result.findings] == ["capacity_degradation", "high_temperature"]


class TestSolarRules:
    def test_efficiency_drop(self, solar_device, add_snapshot):
        for _ in range(9):
            add_snapshot(solar_device.id, efficiency_ratio=1.0)
        add_snapshot(solar_device.id, score=80.0, efficiency_ratio=0.5)
        result = detect_anomalies(solar_device.id)
        assert result.anomaly_type == "efficiency_drop"
        assert result.confidence == 80

    def test_hotspot_message_includes_count(self, solar_device, add_snapshot):
        add_snapshot(solar_device.id, score=85.0, hotspot_count=3)
        result = detect_anomalies(solar_device.id)
        assert result.anomaly_type == "hotspots"
        assert result.message == "3 hotspots detected on panels"

    def test_all_findings_reported(self, solar_device, add_snapshot):
        add_snapshot(solar_device.id, score=60.0, soiling_loss_rate=6.0, connection_integrity_score=65.0)
        result = detect_anomalies(solar_device.id)
        assert result.anomaly_type == "connection_issues"
        assert {f.anomaly_type for f in result.findings} == {"high_soiling", "connection_issues"}

    def test_soiling_at_limit_is_normal(self, solar_device, add_snapshot):
        add_snapshot(solar_device.id, soiling_loss_rate=5.0)
        assert detect_anomalies(solar_device.id).has_anomaly is False


class TestEvaluateRules:
    def test_first_rule_wins_a_tie(self, now):
        from assethealth.data.models import HealthMetricsSnapshot

        snapshot = HealthMetricsSnapshot(device_id=1, timestamp=now, overall_health_score=90.0, remaining_useful_life=1)
        rules = (
            AnomalyRule("first", 80, lambda s, h: True, "first message"),
            AnomalyRule("second", 80, lambda s, h: True, "second message"),
        )
        result = evaluate_rules(rules, snapshot, pd.DataFrame())
        assert result.anomaly_type == "first"
        assert result.message == "first message"
        assert len(result.findings) == 2
