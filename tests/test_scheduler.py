"""
tests/test_scheduler.py
────────────────────────
Tests for recurring maintenance schedules.
"""
from datetime import datetime, timezone

import pytest

from assethealth.config.alerts import IssueType
from assethealth.data import store
from assethealth.maintenance.errors import DeviceNotFoundError
from assethealth.maintenance.scheduler import create_maintenance_schedule, default_checklist, next_due_date

START = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


class TestNextDueDate:
    @pytest.mark.parametrize("frequency,expected", [
        ("daily", datetime(2024, 1, 16, 9, 30, tzinfo=timezone.utc)),
        ("weekly", datetime(2024, 1, 22, 9, 30, tzinfo=timezone.utc)),
        ("monthly", datetime(2024, 2, 15, 9, 30, tzinfo=timezone.utc)),
        ("quarterly", datetime(2024, 4, 15, 9, 30, tzinfo=timezone.utc)),
        ("bi-annual", datetime(2024, 7, 15, 9, 30, tzinfo=timezone.utc)),
        ("annual", datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)),
    ])
    def test_frequency_offsets(self, frequency, expected):
        assert next_due_date(START, frequency) == expected

    def test_unknown_frequency_defaults_to_monthly(self):
        assert next_due_date(START, "fortnightly") == datetime(2024, 2, 15, 9, 30, tzinfo=timezone.utc)

    def test_month_end_clamps(self):
        jan31 = datetime(2024, 1, 31, tzinfo=timezone.utc)
        assert next_due_date(jan31, "monthly") == datetime(2024, 2, 29, tzinfo=timezone.utc)
        aug31 = datetime(2023, 8, 31, tzinfo=timezone.utc)
        assert next_due_date(aug31, "bi-annual") == datetime(2024, 2, 29, tzinfo=timezone.utc)

    def test_leap_day_annual(self):
        feb29 = datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert next_due_date(feb29, "annual") == datetime(2025, 2, 28, tzinfo=timezone.utc)

    def test_custom_interval(self):
        assert next_due_date(START, "custom", interval_days=10) == datetime(2024, 1, 25, 9, 30, tzinfo=timezone.utc)

    def test_custom_without_interval_is_monthly(self):
        assert next_due_date(START, "custom") == datetime(2024, 2, 15, 9, 30, tzinfo=timezone.utc)

    def test_returns_plain_datetime(self):
        due = next_due_date(START, "weekly")
        assert type(due) is datetime
        assert due.tzinfo is not None


class TestChecklist:
    def test_battery_template(self):
        items = default_checklist("battery_storage")
        assert len(items) == 8
        assert items[0].task == "Inspect battery connections for corrosion"
        assert not any(i.completed for i in items)

    def test_solar_template(self):
        assert default_checklist("solar_pv")[0].task == "Clean solar panels"

    def test_generic_template(self):
        items = default_checklist("smart_meter")
        assert [i.task for i in items][0] == "Perform general visual inspection"
        assert len(items) == 5


class TestCreateMaintenanceSchedule:
    def test_defaults(self, battery_device):
        s = create_maintenance_schedule(
            battery_device.id, "Quarterly check", "Full inspection", "quarterly", START, user_id=4,
        )
        assert s.id is not None
        assert s.type == IssueType.PREVENTIVE
        assert s.next_due_date == datetime(2024, 4, 15, 9, 30, tzinfo=timezone.utc)
        assert s.priority_level == "medium"
        assert s.notification_days == 7
        assert s.is_active
        assert s.assigned_to == s.created_by == 4
        assert len(s.checklist_items) == 8

    def test_persisted(self, solar_device):
        created = create_maintenance_schedule(solar_device.id, "Clean", "", "custom", START, interval_days=45)
        [stored] = store.get_device_schedules(solar_device.id)
        assert stored.id == created.id
        assert stored.interval_days == 45
        assert stored.next_due_date == datetime(2024, 2, 29, 9, 30, tzinfo=timezone.utc)
        assert stored.checklist_items[0].task == "Clean solar panels"
        assert stored.assigned_to is None

    def test_unknown_device(self):
        with pytest.raises(DeviceNotFoundError):
            create_maintenance_schedule(404, "x", "y", "monthly", START)
