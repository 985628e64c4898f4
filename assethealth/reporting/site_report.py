"""
assethealth/reporting/site_report.py
────────────────────────────────────
Site-wide maintenance report.

Per device: latest snapshot, issues, alerts and their counts.
Site level: device counts, average health score (devices without a
snapshot count as 0) and a summary label. The site label uses its own
cutoffs (≥90 Excellent, ≥80 Good, ≥70 Fair, ≥50 Poor, else Critical),
not the per-device status bands.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime

import pandas as pd
from pydantic import BaseModel, Field

from assethealth.config.alerts import IssueStatus, site_health_label
from assethealth.data import store
from assethealth.data.models import Device, HealthMetricsSnapshot, MaintenanceAlert, MaintenanceIssue

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "unknown"


class DeviceReport(BaseModel):
    device: Device
    health_metrics: HealthMetricsSnapshot | None = None
    issues: list[MaintenanceIssue] = Field(default_factory=list)
    alerts: list[MaintenanceAlert] = Field(default_factory=list)
    health_score: float = 0.0
    health_status: str = UNKNOWN_STATUS
    active_issues: int = 0
    resolved_issues: int = 0
    active_alerts: int = 0


class ReportSummary(BaseModel):
    health_status: str
    total_issues: int
    active_issues: int
    resolved_issues: int
    total_alerts: int
    active_alerts: int
    acknowledged_alerts: int


class SiteReport(BaseModel):
    site_id: int
    generated_at: datetime
    total_devices: int
    devices_with_issues: int
    devices_with_alerts: int
    avg_health_score: float
    device_reports: list[DeviceReport]
    summary: ReportSummary

    def to_frame(self) -> pd.DataFrame:
        """One row per device, for export."""
        return pd.DataFrame([
            {
                "device_id": r.device.id,
                "name": r.device.name,
                "type": r.device.type,
                "health_score": r.health_score,
                "health_status": r.health_status,
                "active_issues": r.active_issues,
                "resolved_issues": r.resolved_issues,
                "active_alerts": r.active_alerts,
            }
            for r in self.device_reports
        ], columns=["device_id", "name", "type", "health_score", "health_status",
                    "active_issues", "resolved_issues", "active_alerts"])


def _device_report(
    device: Device,
    snapshot: HealthMetricsSnapshot | None,
    issues: list[MaintenanceIssue],
    alerts: list[MaintenanceAlert],
) -> DeviceReport:
    return DeviceReport(
        device=device,
        health_metrics=snapshot,
        issues=issues,
        alerts=alerts,
        health_score=snapshot.overall_health_score if snapshot else 0.0,
        health_status=snapshot.health_status.value if snapshot else UNKNOWN_STATUS,
        active_issues=sum(1 for i in issues if i.status != IssueStatus.COMPLETED),
        resolved_issues=sum(1 for i in issues if i.status == IssueStatus.COMPLETED),
        active_alerts=sum(1 for a in alerts if not a.is_acknowledged),
    )


def generate_maintenance_report(site_id: int) -> SiteReport:
    """Aggregate device health, issues and alerts for every device at a site."""
    devices = store.get_site_devices(site_id)
    device_ids = [d.id for d in devices]
    issues = store.get_issues_for_devices(device_ids)
    alerts = store.get_alerts_for_devices(device_ids)

    reports: list[DeviceReport] = []
    for device in devices:
        reports.append(_device_report(
            device,
            store.get_latest_health_metrics(device.id),
            [i for i in issues if i.device_id == device.id],
            [a for a in alerts if a.device_id == device.id],
        ))

    total = len(reports)
    avg_score = sum(r.health_score for r in reports) / total if total else 0.0
    if total and any(r.health_metrics is None for r in reports):
        logger.debug("Site %s: %d device(s) without a health snapshot",
                     site_id, sum(1 for r in reports if r.health_metrics is None))

    return SiteReport(
        site_id=site_id,
        generated_at=datetime.now(tz=UTC),
        total_devices=total,
        devices_with_issues=sum(1 for r in reports if r.active_issues > 0),
        devices_with_alerts=sum(1 for r in reports if r.active_alerts > 0),
        avg_health_score=avg_score,
        device_reports=reports,
        summary=ReportSummary(
            health_status=site_health_label(avg_score),
            total_issues=len(issues),
            active_issues=sum(1 for i in issues if i.status != IssueStatus.COMPLETED),
            resolved_issues=sum(1 for i in issues if i.status == IssueStatus.COMPLETED),
            total_alerts=len(alerts),
            active_alerts=sum(1 for a in alerts if not a.is_acknowledged),
            acknowledged_alerts=sum(1 for a in alerts if a.is_acknowledged),
        ),
    )
