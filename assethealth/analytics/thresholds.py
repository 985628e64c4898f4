"""
assethealth/analytics/thresholds.py
───────────────────────────────────
Threshold engine.

Evaluates each enabled per-device threshold against the named metric of
the latest health snapshot:
  above    value >  warning
  below    value <  warning
  equal    value == warning (exact)
  between  warning <= value <= secondary

A metric missing from the snapshot is skipped. A `between` threshold with
no secondary bound is skipped with a warning. Breaches are not
deduplicated across evaluations.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from assethealth.config.alerts import ThresholdDirection
from assethealth.data import store
from assethealth.data.models import HealthMetricsSnapshot, MaintenanceThreshold

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdBreach:
    threshold: MaintenanceThreshold
    value: float

    @property
    def message(self) -> str:
        return self.threshold.alert_message or f"{self.threshold.metric_name} threshold exceeded"


def threshold_triggered(value: float, threshold: MaintenanceThreshold) -> bool:
    """
    Classify `value` against a single threshold.

    Raises ValueError for a `between` threshold without a secondary bound.
    """
    direction = threshold.direction
    warning = threshold.warning_threshold
    if direction == ThresholdDirection.ABOVE:
        return value > warning
    if direction == ThresholdDirection.BELOW:
        return value < warning
    if direction == ThresholdDirection.EQUAL:
        return value == warning
    if direction == ThresholdDirection.BETWEEN:
        if threshold.secondary_threshold is None:
            raise ValueError(f"threshold {threshold.id}: 'between' requires secondary_threshold")
        return warning <= value <= threshold.secondary_threshold
    return False


def evaluate_snapshot(
    snapshot: HealthMetricsSnapshot,
    thresholds: list[MaintenanceThreshold],
) -> list[ThresholdBreach]:
    breaches: list[ThresholdBreach] = []
    for threshold in thresholds:
        if not threshold.enabled:
            continue
        value = snapshot.metric_value(threshold.metric_name)
        if value is None:
            continue
        try:
            triggered = threshold_triggered(value, threshold)
        except ValueError:
            logger.warning("Skipping misconfigured threshold %s on device %s", threshold.id, threshold.device_id)
            continue
        if triggered:
            breaches.append(ThresholdBreach(threshold=threshold, value=value))
    return breaches


def evaluate_thresholds(device_id: int) -> list[ThresholdBreach]:
    """Breaches of the device's enabled thresholds on its latest snapshot."""
    snapshot = store.get_latest_health_metrics(device_id)
    if snapshot is None:
        return []
    return evaluate_snapshot(snapshot, store.get_enabled_thresholds(device_id))
