"""
assethealth/analytics/anomaly.py
────────────────────────────────
Anomaly detection on health snapshots.

Algorithm: rule table per device type, evaluated against the latest
snapshot and a baseline of the BASELINE_WINDOW most recent snapshots.
  baseline mean = mean of the values present in the window (0 if none)

Every matching rule is a finding. The reported anomaly is the first
finding with the strictly greatest confidence.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import pandas as pd

from assethealth.config.devices import DeviceType
from assethealth.config.settings import settings
from assethealth.data import store
from assethealth.data.models import HealthMetricsSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnomalyFinding:
    anomaly_type: str
    confidence: float
    message: str


@dataclass(frozen=True)
class AnomalyResult:
    has_anomaly: bool
    anomaly_type: str | None = None
    confidence: float | None = None
    message: str | None = None
    findings: tuple[AnomalyFinding, ...] = field(default_factory=tuple)


NO_ANOMALY = AnomalyResult(has_anomaly=False)


def baseline_mean(history: pd.DataFrame, column: str) -> float:
    """Mean of the non-missing values of `column`; 0.0 when there are none."""
    if history.empty or column not in history.columns:
        return 0.0
    mean = pd.to_numeric(history[column], errors="coerce").mean(skipna=True)
    return 0.0 if pd.isna(mean) else float(mean)


# ── Rules ─────────────────────────────────────────────────────────────────────

Check = Callable[[HealthMetricsSnapshot, pd.DataFrame], bool]


@dataclass(frozen=True)
class AnomalyRule:
    anomaly_type: str
    confidence: float
    check: Check
    message: str | Callable[[HealthMetricsSnapshot], str]

    def apply(self, latest: HealthMetricsSnapshot, history: pd.DataFrame) -> AnomalyFinding | None:
        if not self.check(latest, history):
            return None
        message = self.message(latest) if callable(self.message) else self.message
        return AnomalyFinding(self.anomaly_type, self.confidence, message)


def _capacity_degradation(s: HealthMetricsSnapshot, h: pd.DataFrame) -> bool:
    return (
        s.capacity_fading is not None
        and s.capacity_fading > 1
        and s.capacity_fading > baseline_mean(h, "capacity_fading") * 1.5
    )


def _internal_resistance(s: HealthMetricsSnapshot, h: pd.DataFrame) -> bool:
    return (
        s.internal_resistance is not None
        and s.internal_resistance > baseline_mean(h, "internal_resistance") * 1.3
    )


def _efficiency_drop(s: HealthMetricsSnapshot, h: pd.DataFrame) -> bool:
    return (
        s.efficiency_ratio is not None
        and s.efficiency_ratio < baseline_mean(h, "efficiency_ratio") * 0.8
    )


BATTERY_RULES: tuple[AnomalyRule, ...] = (
    AnomalyRule("capacity_degradation", 85, _capacity_degradation,
                "Abnormal capacity degradation detected"),
    AnomalyRule("internal_resistance", 75, _internal_resistance,
                "Increasing internal resistance detected"),
    AnomalyRule("high_temperature", 95,
                lambda s, h: s.operating_temperature is not None and s.operating_temperature > 40,
                "Battery operating at high temperature"),
    AnomalyRule("low_temperature", 90,
                lambda s, h: s.operating_temperature is not None and s.operating_temperature < 5,
                "Battery operating at low temperature"),
)

SOLAR_RULES: tuple[AnomalyRule, ...] = (
    AnomalyRule("efficiency_drop", 80, _efficiency_drop,
                "Significant drop in system efficiency"),
    AnomalyRule("high_soiling", 70,
                lambda s, h: s.soiling_loss_rate is not None and s.soiling_loss_rate > 5,
                "High soiling loss detected, panels may need cleaning"),
    AnomalyRule("hotspots", 90,
                lambda s, h: s.hotspot_count is not None and s.hotspot_count > 0,
                lambda s: f"{s.hotspot_count} hotspots detected on panels"),
    AnomalyRule("connection_issues", 85,
                lambda s, h: s.connection_integrity_score is not None and s.connection_integrity_score < 70,
                "Potential electrical connection issues detected"),
)

ANOMALY_RULES: dict[str, tuple[AnomalyRule, ...]] = {
    DeviceType.BATTERY_STORAGE: BATTERY_RULES,
    DeviceType.SOLAR_PV: SOLAR_RULES,
}


# ── Public API ────────────────────────────────────────────────────────────────

def evaluate_rules(
    rules: tuple[AnomalyRule, ...],
    latest: HealthMetricsSnapshot,
    history: pd.DataFrame,
) -> AnomalyResult:
    """Apply `rules` in order and pick the leading finding."""
    findings = [f for f in (rule.apply(latest, history) for rule in rules) if f is not None]
    if not findings:
        return NO_ANOMALY

    leader = findings[0]
    for finding in findings[1:]:
        if finding.confidence > leader.confidence:
            leader = finding

    return AnomalyResult(
        has_anomaly=True,
        anomaly_type=leader.anomaly_type,
        confidence=leader.confidence,
        message=leader.message,
        findings=tuple(findings),
    )


def detect_anomalies(device_id: int) -> AnomalyResult:
    """
    Compare the device's latest snapshot against its recent baseline.
    No snapshot, no device, or an unmodeled type → no anomaly.
    """
    latest = store.get_latest_health_metrics(device_id)
    if latest is None:
        return NO_ANOMALY
    device = store.get_device(device_id)
    if device is None:
        return NO_ANOMALY

    rules = ANOMALY_RULES.get(device.type)
    if not rules:
        return NO_ANOMALY

    history = store.get_health_metrics_frame(device_id, settings.BASELINE_WINDOW)
    result = evaluate_rules(rules, latest, history)
    if result.has_anomaly:
        logger.info(
            "Device %s anomaly %s (confidence %.0f, %d finding(s))",
            device_id, result.anomaly_type, result.confidence, len(result.findings),
        )
    return result
