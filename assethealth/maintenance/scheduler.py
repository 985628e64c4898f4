"""
assethealth/maintenance/scheduler.py
────────────────────────────────────
Recurring preventive-maintenance schedules.

Next due date = start date + frequency offset. Month-based offsets clamp
to the last day of the target month (Jan 31 + 1 month → Feb 28/29).
Unknown frequencies fall back to monthly.
"""
from __future__ import annotations

import logging
from datetime import datetime

import pandas as pd

from assethealth.config.alerts import IssueType
from assethealth.config.devices import CHECKLIST_TEMPLATES, GENERIC_CHECKLIST
from assethealth.data import store
from assethealth.data.models import ChecklistItem, MaintenanceSchedule
from assethealth.maintenance.errors import DeviceNotFoundError

logger = logging.getLogger(__name__)

CUSTOM_FREQUENCY = "custom"

FREQUENCY_OFFSETS: dict[str, pd.DateOffset] = {
    "daily": pd.DateOffset(days=1),
    "weekly": pd.DateOffset(days=7),
    "monthly": pd.DateOffset(months=1),
    "quarterly": pd.DateOffset(months=3),
    "bi-annual": pd.DateOffset(months=6),
    "annual": pd.DateOffset(years=1),
}
DEFAULT_OFFSET = FREQUENCY_OFFSETS["monthly"]


def next_due_date(start_date: datetime, frequency: str, interval_days: int | None = None) -> datetime:
    if frequency == CUSTOM_FREQUENCY and interval_days is not None:
        offset = pd.DateOffset(days=interval_days)
    else:
        offset = FREQUENCY_OFFSETS.get(frequency)
        if offset is None:
            if frequency != CUSTOM_FREQUENCY:
                logger.warning("Unknown schedule frequency %r, defaulting to monthly", frequency)
            offset = DEFAULT_OFFSET
    return (pd.Timestamp(start_date) + offset).to_pydatetime()


def default_checklist(device_type: str) -> list[ChecklistItem]:
    tasks = CHECKLIST_TEMPLATES.get(device_type, GENERIC_CHECKLIST)
    return [ChecklistItem(task=task) for task in tasks]


def create_maintenance_schedule(
    device_id: int,
    title: str,
    description: str,
    frequency: str,
    start_date: datetime,
    user_id: int | None = None,
    interval_days: int | None = None,
) -> MaintenanceSchedule:
    """Create and persist a preventive schedule with the device-type checklist."""
    device = store.get_device(device_id)
    if device is None:
        raise DeviceNotFoundError(device_id)

    schedule = store.insert_schedule(MaintenanceSchedule(
        device_id=device_id,
        title=title,
        description=description,
        type=IssueType.PREVENTIVE,
        frequency=frequency,
        start_date=start_date,
        next_due_date=next_due_date(start_date, frequency, interval_days),
        interval_days=interval_days,
        checklist_items=default_checklist(device.type),
        priority_level="medium",
        is_active=True,
        notification_days=7,
        assigned_to=user_id,
        created_by=user_id,
    ))
    logger.info("Schedule %s (%s) created for device %s, next due %s",
                schedule.id, frequency, device_id, schedule.next_due_date.date())
    return schedule
