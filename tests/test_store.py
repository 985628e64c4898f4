"""
tests/test_store.py
────────────────────
Tests for the SQLite store.
"""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from assethealth.config.alerts import AlertType, Severity
from assethealth.data import store
from assethealth.data.models import Device, MaintenanceAlert


class TestDevices:
    def test_settings_round_trip(self, make_device):
        device = make_device("solar_pv", settings={"installationYear": 2020, "vendorTag": "a"})
        loaded = store.get_device(device.id)
        assert loaded.settings == {"installationYear": 2020, "vendorTag": "a"}
        assert loaded.typed_settings().installation_year == 2020

    def test_invalid_settings_rejected(self):
        with pytest.raises(ValidationError):
            store.insert_device(Device(name="x", type="battery_storage", site_id=1,
                                       settings={"maxCycleLimit": -1}))

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            store.insert_device(Device(name="x", type="solar_pv", site_id=1,
                                       settings={"timezone": "Mars/Olympus_Mons"}))

    def test_site_devices(self, make_device):
        make_device(site_id=1)
        make_device(site_id=2)
        assert len(store.get_site_devices(1)) == 1
        assert store.get_device(999) is None


class TestReadings:
    def test_recent_readings_newest_first(self, add_readings, now):
        add_readings(1, count=5, power=1.0)
        recent = store.get_recent_readings(1, limit=3)
        assert [r.timestamp for r in recent] == [now, now - timedelta(hours=1), now - timedelta(hours=2)]
        assert store.get_latest_reading(1).timestamp == now

    def test_additional_data_round_trip(self, add_readings):
        add_readings(1, count=1, additional_data={"inverter": "ok"})
        assert store.get_latest_reading(1).additional_data == {"inverter": "ok"}


class TestHealthMetrics:
    def test_frame_newest_first(self, add_snapshot):
        add_snapshot(1, score=95.0)
        add_snapshot(1, score=60.0)
        df = store.get_health_metrics_frame(1, limit=10)
        assert list(df["overall_health_score"]) == [60.0, 95.0]
        assert store.get_health_metrics_frame(2).empty


class TestAlerts:
    def test_acknowledge_stamp_is_conditional(self, now):
        alert = store.insert_alert(MaintenanceAlert(
            device_id=1, alert_type=AlertType.ANOMALY_DETECTED, message="m",
            severity=Severity.LOW, trigger_value=1.0, metric_name="hotspots", triggered_at=now,
        ))
        assert store.stamp_alert_acknowledged(alert.id, 1, now)
        assert not store.stamp_alert_acknowledged(alert.id, 2, now + timedelta(hours=1))
        loaded = store.get_alert(alert.id)
        assert loaded.acknowledged_at == now
        assert loaded.acknowledged_by == 1
