"""
assethealth/data/models.py
──────────────────────────
Pydantic v2 data models for devices, readings, health snapshots, and the
maintenance entities (issues, alerts, thresholds, schedules, predictions).
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from assethealth.config.alerts import (
    AlertType,
    HealthStatus,
    IssueStatus,
    IssueType,
    Severity,
    ThresholdDirection,
    health_status_from_score,
)
from assethealth.config.devices import DeviceSettings, parse_device_settings

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    """operatingTemperature → operating_temperature (snake_case passes through)."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class Device(BaseModel):
    id: int | None = None
    name: str
    type: str
    model: str | None = None
    manufacturer: str | None = None
    capacity: float | None = Field(default=None, ge=0.0)
    site_id: int
    settings: dict[str, Any] = Field(default_factory=dict)

    def typed_settings(self) -> DeviceSettings:
        return parse_device_settings(self.type, self.settings)


class Reading(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: int
    timestamp: datetime
    power: float | None = None
    energy: float | None = None
    state_of_charge: float | None = Field(default=None, ge=0.0, le=100.0)
    voltage: float | None = None
    current: float | None = None
    frequency: float | None = None
    temperature: float | None = None
    additional_data: dict[str, Any] | None = None


class HealthMetricsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    device_id: int
    timestamp: datetime
    # battery
    cycle_count: int | None = Field(default=None, ge=0)
    capacity_fading: float | None = None
    internal_resistance: float | None = None
    operating_temperature: float | None = None
    # solar
    efficiency_ratio: float | None = None
    degradation_rate: float | None = None
    soiling_loss_rate: float | None = None
    hotspot_count: int | None = Field(default=None, ge=0)
    connection_integrity_score: float | None = None
    # universal
    overall_health_score: float = Field(ge=0.0, le=100.0)
    remaining_useful_life: int = Field(ge=0)
    failure_probability: float = Field(ge=0.0, le=100.0)
    health_status: HealthStatus

    @model_validator(mode="before")
    @classmethod
    def _derive_from_score(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("overall_health_score") is not None:
            score = float(data["overall_health_score"])
            data = dict(data)
            data.setdefault("failure_probability", min(100.0, max(0.0, 100.0 - score)))
            data.setdefault("health_status", health_status_from_score(score))
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> HealthMetricsSnapshot:
        expected_fp = 100.0 - self.overall_health_score
        if not math.isclose(self.failure_probability, expected_fp, abs_tol=1e-6):
            raise ValueError(
                f"failure_probability {self.failure_probability} != 100 - score ({expected_fp})"
            )
        expected_status = health_status_from_score(self.overall_health_score)
        if self.health_status != expected_status:
            raise ValueError(
                f"health_status {self.health_status.value} inconsistent with score "
                f"{self.overall_health_score} (expected {expected_status.value})"
            )
        return self

    def metric_value(self, metric_name: str) -> float | None:
        """Look up a numeric field by snake_case or camelCase name."""
        field = to_snake(metric_name)
        if field not in type(self).model_fields or field in ("id", "device_id"):
            return None
        value = getattr(self, field)
        if value is None or isinstance(value, (HealthStatus, datetime)):
            return None
        return float(value)


class MaintenanceIssue(BaseModel):
    id: int | None = None
    device_id: int
    title: str
    description: str = ""
    type: IssueType = IssueType.PREDICTIVE
    severity: Severity
    confidence_score: float | None = Field(default=None, ge=0.0, le=100.0)
    anomaly_score: float | None = None
    status: IssueStatus = IssueStatus.OPEN
    detected_at: datetime
    predicted_failure_at: datetime | None = None
    resolution: str | None = None
    resolution_notes: str | None = None
    maintenance_cost: float | None = Field(default=None, ge=0.0)
    resolved_at: datetime | None = None
    resolved_by: int | None = None
    created_at: datetime | None = None


class MaintenanceAlert(BaseModel):
    id: int | None = None
    device_id: int
    alert_type: AlertType
    message: str
    severity: Severity
    related_issue_id: int | None = None
    threshold_id: int | None = None
    trigger_value: float
    threshold_value: float | None = None
    metric_name: str
    triggered_at: datetime
    acknowledged_at: datetime | None = None
    acknowledged_by: int | None = None

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None


class MaintenanceThreshold(BaseModel):
    id: int | None = None
    device_id: int
    metric_name: str
    direction: ThresholdDirection
    warning_threshold: float
    secondary_threshold: float | None = None
    severity: Severity = Severity.MEDIUM
    alert_message: str | None = None
    enabled: bool = True


class ChecklistItem(BaseModel):
    task: str
    completed: bool = False


class MaintenanceSchedule(BaseModel):
    id: int | None = None
    device_id: int
    title: str
    description: str = ""
    type: IssueType = IssueType.PREVENTIVE
    frequency: str
    start_date: datetime
    next_due_date: datetime
    interval_days: int | None = Field(default=None, gt=0)
    checklist_items: list[ChecklistItem] = Field(default_factory=list)
    priority_level: str = "medium"
    is_active: bool = True
    notification_days: int = Field(default=7, ge=0)
    assigned_to: int | None = None
    created_by: int | None = None


class MaintenancePrediction(BaseModel):
    id: int | None = None
    device_id: int
    metric_name: str
    prediction_type: str
    prediction_for_timestamp: datetime
    probability_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    confidence_score: float = Field(default=70.0, ge=0.0, le=100.0)
    predicted_value: float
    algorithm_used: str
    model_version: str
    affected_components: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    potential_impact: str = ""
    business_impact_score: float = Field(default=50.0, ge=0.0, le=100.0)
    created_at: datetime | None = None
