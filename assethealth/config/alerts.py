"""
assethealth/config/alerts.py
────────────────────────────
Severity levels, lifecycle states, and the score/confidence banding tables.
"""

from enum import Enum


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, Enum):
    ANOMALY_DETECTED = "anomaly_detected"
    THRESHOLD_EXCEEDED = "threshold_exceeded"


class IssueStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class IssueType(str, Enum):
    PREDICTIVE = "predictive"
    PREVENTIVE = "preventive"
    REACTIVE = "reactive"
    INSPECTION = "inspection"


class HealthStatus(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class ThresholdDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    EQUAL = "equal"
    BETWEEN = "between"


# ── Banding tables (lower bound inclusive, checked top-down) ─────────────────

# Anomaly confidence → issue/alert severity
CONFIDENCE_SEVERITY: tuple[tuple[float, Severity], ...] = (
    (90.0, Severity.CRITICAL),
    (75.0, Severity.HIGH),
    (50.0, Severity.MEDIUM),
)

# Per-device health score → snapshot status
DEVICE_HEALTH_BANDS: tuple[tuple[float, HealthStatus], ...] = (
    (90.0, HealthStatus.GOOD),
    (70.0, HealthStatus.FAIR),
    (50.0, HealthStatus.POOR),
)

# Site average score → report label. Cutoffs differ from the device bands.
SITE_HEALTH_BANDS: tuple[tuple[float, str], ...] = (
    (90.0, "Excellent"),
    (80.0, "Good"),
    (70.0, "Fair"),
    (50.0, "Poor"),
)


def severity_from_confidence(confidence: float) -> Severity:
    for lower, severity in CONFIDENCE_SEVERITY:
        if confidence >= lower:
            return severity
    return Severity.LOW


def health_status_from_score(score: float) -> HealthStatus:
    for lower, status in DEVICE_HEALTH_BANDS:
        if score >= lower:
            return status
    return HealthStatus.CRITICAL


def site_health_label(avg_score: float) -> str:
    for lower, label in SITE_HEALTH_BANDS:
        if avg_score >= lower:
            return label
    return "Critical"
