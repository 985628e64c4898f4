"""
assethealth/maintenance/errors.py
─────────────────────────────────
Errors surfaced by operations that carry explicit user intent
(resolve, acknowledge, schedule).
"""


class MaintenanceError(Exception):
    """Base exception for maintenance operations"""

    def __init__(self, entity_id: int, message: str) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class DeviceNotFoundError(MaintenanceError):
    def __init__(self, device_id: int) -> None:
        super().__init__(device_id, f"Device {device_id} not found")


class IssueNotFoundError(MaintenanceError):
    def __init__(self, issue_id: int) -> None:
        super().__init__(issue_id, f"Maintenance issue {issue_id} not found")


class AlertNotFoundError(MaintenanceError):
    def __init__(self, alert_id: int) -> None:
        super().__init__(alert_id, f"Maintenance alert {alert_id} not found")


class IssueAlreadyResolvedError(MaintenanceError):
    """Completed issues cannot be resolved again"""

    def __init__(self, issue_id: int) -> None:
        super().__init__(issue_id, f"Maintenance issue {issue_id} is already completed")
