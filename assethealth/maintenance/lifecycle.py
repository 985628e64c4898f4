"""
assethealth/maintenance/lifecycle.py
────────────────────────────────────
Issue and alert lifecycle.

Issue:  open → in_progress → completed   (completed is terminal)
Alert:  triggered → acknowledged         (stamped once)

generate_predictive_maintenance_alerts() turns an anomaly into one
predictive issue plus a linked alert, then adds one alert per threshold
breach. Persistence errors propagate to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from assethealth.analytics.anomaly import detect_anomalies
from assethealth.analytics.health_index import compute_health_score
from assethealth.analytics.thresholds import evaluate_thresholds
from assethealth.config.alerts import AlertType, IssueStatus, IssueType, severity_from_confidence
from assethealth.config.devices import DEVICE_LABELS
from assethealth.data import store
from assethealth.data.models import HealthMetricsSnapshot, MaintenanceAlert, MaintenanceIssue
from assethealth.maintenance.errors import (
    AlertNotFoundError,
    DeviceNotFoundError,
    IssueAlreadyResolvedError,
    IssueNotFoundError,
)

logger = logging.getLogger(__name__)

PREDICTED_FAILURE_HORIZON = timedelta(days=30)


# ── Alert generation ──────────────────────────────────────────────────────────

def generate_predictive_maintenance_alerts(device_id: int) -> list[MaintenanceAlert]:
    """
    Run anomaly detection and threshold evaluation for a device and persist
    the resulting issue/alerts. Returns the alerts created by this call.
    """
    device = store.get_device(device_id)
    if device is None:
        return []

    now = datetime.now(tz=UTC)
    alerts: list[MaintenanceAlert] = []

    anomaly = detect_anomalies(device_id)
    if anomaly.has_anomaly:
        severity = severity_from_confidence(anomaly.confidence)
        label = DEVICE_LABELS.get(device.type, "Device")
        issue = store.insert_issue(MaintenanceIssue(
            device_id=device_id,
            title=f"{label} issue detected: {anomaly.anomaly_type}",
            description=anomaly.message,
            type=IssueType.PREDICTIVE,
            severity=severity,
            confidence_score=anomaly.confidence,
            anomaly_score=anomaly.confidence,
            detected_at=now,
            predicted_failure_at=now + PREDICTED_FAILURE_HORIZON,
            created_at=now,
        ))
        alerts.append(store.insert_alert(MaintenanceAlert(
            device_id=device_id,
            alert_type=AlertType.ANOMALY_DETECTED,
            message=anomaly.message,
            severity=severity,
            related_issue_id=issue.id,
            trigger_value=anomaly.confidence,
            metric_name=anomaly.anomaly_type,
            triggered_at=now,
        )))

    for breach in evaluate_thresholds(device_id):
        threshold = breach.threshold
        alerts.append(store.insert_alert(MaintenanceAlert(
            device_id=device_id,
            alert_type=AlertType.THRESHOLD_EXCEEDED,
            message=breach.message,
            severity=threshold.severity,
            threshold_id=threshold.id,
            trigger_value=breach.value,
            threshold_value=threshold.warning_threshold,
            metric_name=threshold.metric_name,
            triggered_at=now,
        )))

    if alerts:
        logger.info("Device %s: %d new maintenance alert(s)", device_id, len(alerts))
    return alerts


# ── Transitions ───────────────────────────────────────────────────────────────

def resolve_issue(
    issue_id: int,
    user_id: int,
    resolution: str,
    notes: str | None = None,
    cost: float | None = None,
) -> MaintenanceIssue:
    """Complete an issue. A completed issue is never reopened or re-resolved."""
    if cost is not None and cost < 0:
        raise ValueError("maintenance cost must be non-negative")

    issue = store.get_issue(issue_id)
    if issue is None:
        raise IssueNotFoundError(issue_id)
    if issue.status == IssueStatus.COMPLETED:
        raise IssueAlreadyResolvedError(issue_id)

    if not store.complete_issue(issue_id, user_id, resolution, notes, cost, datetime.now(tz=UTC)):
        # Completed concurrently between the read and the update
        raise IssueAlreadyResolvedError(issue_id)

    logger.info("Issue %s resolved by user %s", issue_id, user_id)
    return store.get_issue(issue_id)


def acknowledge_alert(alert_id: int, user_id: int) -> MaintenanceAlert:
    """Stamp an alert as acknowledged. Repeat calls keep the first stamp."""
    alert = store.get_alert(alert_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)
    if alert.is_acknowledged:
        return alert

    if store.stamp_alert_acknowledged(alert_id, user_id, datetime.now(tz=UTC)):
        logger.info("Alert %s acknowledged by user %s", alert_id, user_id)
    return store.get_alert(alert_id)


# ── Queries ───────────────────────────────────────────────────────────────────

def get_device_issues(device_id: int) -> list[MaintenanceIssue]:
    return store.get_device_issues(device_id)


def list_issues(
    limit: int = 100,
    offset: int = 0,
    status: IssueStatus | str | None = None,
    severity: str | None = None,
) -> list[MaintenanceIssue]:
    return store.list_issues(limit=limit, offset=offset, status=_value(status), severity=_value(severity))


def get_device_alerts(device_id: int) -> list[MaintenanceAlert]:
    return store.get_device_alerts(device_id)


def list_alerts(
    limit: int = 100,
    offset: int = 0,
    severity: str | None = None,
    include_acknowledged: bool = False,
) -> list[MaintenanceAlert]:
    return store.list_alerts(
        limit=limit, offset=offset, severity=_value(severity), include_acknowledged=include_acknowledged,
    )


def get_health_history(device_id: int, limit: int = 100) -> list[HealthMetricsSnapshot]:
    """Newest-first health snapshots."""
    return store.get_health_metrics(device_id, limit)


def _value(option):
    return getattr(option, "value", option)


# ── Pipeline ──────────────────────────────────────────────────────────────────

@dataclass
class HealthCheckResult:
    device_id: int
    health_score: float
    alerts: list[MaintenanceAlert] = field(default_factory=list)


def run_health_check(device_id: int) -> HealthCheckResult:
    """Score → anomalies → thresholds → persisted issues/alerts, for one device."""
    device = store.get_device(device_id)
    if device is None:
        raise DeviceNotFoundError(device_id)

    score = compute_health_score(device_id, device.type)
    alerts = generate_predictive_maintenance_alerts(device_id)
    return HealthCheckResult(device_id=device_id, health_score=score, alerts=alerts)
