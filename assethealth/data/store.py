"""
assethealth/data/store.py
─────────────────────────
SQLite data store abstraction.

Provides:
  - initialize_db()           : Create tables (+ optional demo seed)
  - devices / readings        : Registry and reading-store collaborators
  - health metrics            : Append-only snapshot history
  - issues / alerts           : Insert, read, and the two lifecycle updates
  - thresholds / schedules    : Configuration and schedule records
  - predictions               : Advisor output

Timestamps are stored as ISO-8601 UTC text; JSON columns as text.
Ordering is always newest-first with the row id as tie-breaker.

Thread safety: uses check_same_thread=False + a module-level lock.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

import pandas as pd
from pydantic import BaseModel

from assethealth.config.alerts import IssueStatus
from assethealth.config.settings import settings
from assethealth.data.models import (
    Device,
    HealthMetricsSnapshot,
    MaintenanceAlert,
    MaintenanceIssue,
    MaintenancePrediction,
    MaintenanceSchedule,
    MaintenanceThreshold,
    Reading,
)

_lock = threading.RLock()
_DB: sqlite3.Connection | None = None

M = TypeVar("M", bound=BaseModel)


# ── Connection ────────────────────────────────────────────────────────────────

def _get_conn() -> sqlite3.Connection:
    global _DB
    if _DB is None:
        _DB = sqlite3.connect(settings.DATABASE_URL, check_same_thread=False)
        _DB.row_factory = sqlite3.Row
    return _DB


def reset_db() -> None:
    """Close the connection; the next call reconnects (fresh DB for :memory:)."""
    global _DB
    with _lock:
        if _DB is not None:
            _DB.close()
        _DB = None


# ── Schema ────────────────────────────────────────────────────────────────────

_CREATE_DEVICES = """
CREATE TABLE IF NOT EXISTS devices (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT NOT NULL,
    type          TEXT NOT NULL,
    model         TEXT,
    manufacturer  TEXT,
    capacity      REAL,
    site_id       INTEGER NOT NULL,
    settings      TEXT NOT NULL DEFAULT '{}'
);
"""

_CREATE_READINGS = """
CREATE TABLE IF NOT EXISTS readings (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id        INTEGER NOT NULL,
    timestamp        TEXT NOT NULL,
    power            REAL,
    energy           REAL,
    state_of_charge  REAL,
    voltage          REAL,
    current          REAL,
    frequency        REAL,
    temperature      REAL,
    additional_data  TEXT
);
"""

_CREATE_HEALTH_METRICS = """
CREATE TABLE IF NOT EXISTS health_metrics (
    id                          INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id                   INTEGER NOT NULL,
    timestamp                   TEXT NOT NULL,
    cycle_count                 INTEGER,
    capacity_fading             REAL,
    internal_resistance         REAL,
    operating_temperature       REAL,
    efficiency_ratio            REAL,
    degradation_rate            REAL,
    soiling_loss_rate           REAL,
    hotspot_count               INTEGER,
    connection_integrity_score  REAL,
    overall_health_score        REAL NOT NULL,
    remaining_useful_life       INTEGER NOT NULL,
    failure_probability         REAL NOT NULL,
    health_status               TEXT NOT NULL
);
"""

_CREATE_ISSUES = """
CREATE TABLE IF NOT EXISTS maintenance_issues (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id             INTEGER NOT NULL,
    title                 TEXT NOT NULL,
    description           TEXT NOT NULL DEFAULT '',
    type                  TEXT NOT NULL,
    severity              TEXT NOT NULL,
    confidence_score      REAL,
    anomaly_score         REAL,
    status                TEXT NOT NULL DEFAULT 'open',
    detected_at           TEXT NOT NULL,
    predicted_failure_at  TEXT,
    resolution            TEXT,
    resolution_notes      TEXT,
    maintenance_cost      REAL,
    resolved_at           TEXT,
    resolved_by           INTEGER,
    created_at            TEXT
);
"""

_CREATE_ALERTS = """
CREATE TABLE IF NOT EXISTS maintenance_alerts (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id         INTEGER NOT NULL,
    alert_type        TEXT NOT NULL,
    message           TEXT NOT NULL,
    severity          TEXT NOT NULL,
    related_issue_id  INTEGER,
    threshold_id      INTEGER,
    trigger_value     REAL NOT NULL,
    threshold_value   REAL,
    metric_name       TEXT NOT NULL,
    triggered_at      TEXT NOT NULL,
    acknowledged_at   TEXT,
    acknowledged_by   INTEGER
);
"""

_CREATE_THRESHOLDS = """
CREATE TABLE IF NOT EXISTS maintenance_thresholds (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id            INTEGER NOT NULL,
    metric_name          TEXT NOT NULL,
    direction            TEXT NOT NULL,
    warning_threshold    REAL NOT NULL,
    secondary_threshold  REAL,
    severity             TEXT NOT NULL,
    alert_message        TEXT,
    enabled              INTEGER NOT NULL DEFAULT 1
);
"""

_CREATE_SCHEDULES = """
CREATE TABLE IF NOT EXISTS maintenance_schedules (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id          INTEGER NOT NULL,
    title              TEXT NOT NULL,
    description        TEXT NOT NULL DEFAULT '',
    type               TEXT NOT NULL,
    frequency          TEXT NOT NULL,
    start_date         TEXT NOT NULL,
    next_due_date      TEXT NOT NULL,
    interval_days      INTEGER,
    checklist_items    TEXT NOT NULL DEFAULT '[]',
    priority_level     TEXT NOT NULL DEFAULT 'medium',
    is_active          INTEGER NOT NULL DEFAULT 1,
    notification_days  INTEGER NOT NULL DEFAULT 7,
    assigned_to        INTEGER,
    created_by         INTEGER
);
"""

_CREATE_PREDICTIONS = """
CREATE TABLE IF NOT EXISTS maintenance_predictions (
    id                        INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id                 INTEGER NOT NULL,
    metric_name               TEXT NOT NULL,
    prediction_type           TEXT NOT NULL,
    prediction_for_timestamp  TEXT NOT NULL,
    probability_percentage    REAL NOT NULL,
    confidence_score          REAL NOT NULL,
    predicted_value           REAL NOT NULL,
    algorithm_used            TEXT NOT NULL,
    model_version             TEXT NOT NULL,
    affected_components       TEXT NOT NULL DEFAULT '[]',
    recommended_actions       TEXT NOT NULL DEFAULT '[]',
    potential_impact          TEXT NOT NULL DEFAULT '',
    business_impact_score     REAL NOT NULL,
    created_at                TEXT
);
"""

_CREATE_IDX = """
CREATE INDEX IF NOT EXISTS idx_devices_site        ON devices                (site_id);
CREATE INDEX IF NOT EXISTS idx_readings_dev_ts     ON readings               (device_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_health_dev_ts       ON health_metrics         (device_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_issues_dev          ON maintenance_issues     (device_id);
CREATE INDEX IF NOT EXISTS idx_alerts_dev_ts       ON maintenance_alerts     (device_id, triggered_at);
CREATE INDEX IF NOT EXISTS idx_thresholds_dev      ON maintenance_thresholds (device_id);
"""

_JSON_COLUMNS = {
    "settings",
    "additional_data",
    "checklist_items",
    "affected_components",
    "recommended_actions",
}


def _create_tables(conn: sqlite3.Connection) -> None:
    with conn:
        conn.executescript(
            _CREATE_DEVICES
            + _CREATE_READINGS
            + _CREATE_HEALTH_METRICS
            + _CREATE_ISSUES
            + _CREATE_ALERTS
            + _CREATE_THRESHOLDS
            + _CREATE_SCHEDULES
            + _CREATE_PREDICTIONS
            + _CREATE_IDX
        )


# ── Encoding helpers ──────────────────────────────────────────────────────────

def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _encode(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column in _JSON_COLUMNS:
        return json.dumps(value)
    if isinstance(value, datetime):
        return _ts(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _decode(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    for column in _JSON_COLUMNS & data.keys():
        if data[column] is not None:
            data[column] = json.loads(data[column])
    return data


def _insert(table: str, record: BaseModel) -> int:
    data = {k: _encode(k, v) for k, v in record.model_dump(exclude={"id"}).items()}
    columns = ", ".join(data)
    placeholders = ", ".join("?" for _ in data)
    conn = _get_conn()
    with _lock, conn:
        cur = conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(data.values()),
        )
        return int(cur.lastrowid)


def _insert_with_id(table: str, record: M) -> M:
    return record.model_copy(update={"id": _insert(table, record)})


def _fetch_one(model: type[M], sql: str, params: Sequence[Any] = ()) -> M | None:
    conn = _get_conn()
    with _lock:
        row = conn.execute(sql, params).fetchone()
    return model.model_validate(_decode(row)) if row else None


def _fetch_all(model: type[M], sql: str, params: Sequence[Any] = ()) -> list[M]:
    conn = _get_conn()
    with _lock:
        rows = conn.execute(sql, params).fetchall()
    return [model.model_validate(_decode(r)) for r in rows]


def _in_clause(ids: Iterable[int]) -> tuple[str, list[int]]:
    values = list(ids)
    return ", ".join("?" for _ in values), values


# ── Lifecycle ─────────────────────────────────────────────────────────────────

def initialize_db(seed_demo: bool = False, force_reseed: bool = False) -> None:
    """
    Create tables and, when asked, populate a demo site with simulated history.
    Safe to call multiple times (idempotent).
    """
    conn = _get_conn()
    _create_tables(conn)
    if not seed_demo:
        return

    # Import here to avoid circular deps
    from assethealth.data.simulator import generate_demo_site

    with _lock:
        count = conn.execute("SELECT COUNT(*) FROM devices").fetchone()[0]
        if count > 0 and not force_reseed:
            return  # Already seeded

        with conn:
            for table in ("readings", "health_metrics", "maintenance_alerts",
                          "maintenance_issues", "maintenance_thresholds",
                          "maintenance_schedules", "maintenance_predictions", "devices"):
                conn.execute(f"DELETE FROM {table}")

        for device, readings, thresholds in generate_demo_site():
            saved = insert_device(device)
            insert_readings([r.model_copy(update={"device_id": saved.id}) for r in readings])
            for threshold in thresholds:
                insert_threshold(threshold.model_copy(update={"device_id": saved.id}))


# ── Devices (registry collaborator) ───────────────────────────────────────────

def insert_device(device: Device) -> Device:
    """Register a device; its settings bag is validated against the typed model."""
    device.typed_settings()
    return _insert_with_id("devices", device)


def get_device(device_id: int) -> Device | None:
    return _fetch_one(Device, "SELECT * FROM devices WHERE id = ?", (device_id,))


def get_site_devices(site_id: int) -> list[Device]:
    return _fetch_all(Device, "SELECT * FROM devices WHERE site_id = ? ORDER BY id", (site_id,))


# ── Readings (reading-store collaborator) ─────────────────────────────────────

def insert_readings(readings: list[Reading]) -> None:
    if not readings:
        return
    columns = [c for c in Reading.model_fields]
    rows = [tuple(_encode(c, getattr(r, c)) for c in columns) for r in readings]
    conn = _get_conn()
    with _lock, conn:
        conn.executemany(
            f"INSERT INTO readings ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            rows,
        )


def get_latest_reading(device_id: int) -> Reading | None:
    return _fetch_one(
        Reading,
        "SELECT * FROM readings WHERE device_id = ? ORDER BY timestamp DESC, id DESC LIMIT 1",
        (device_id,),
    )


def get_recent_readings(device_id: int, limit: int = 100) -> list[Reading]:
    """Newest-first readings for a device."""
    rows = _fetch_all(
        Reading,
        "SELECT * FROM readings WHERE device_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
        (device_id, limit),
    )
    return rows


# ── Health metrics ────────────────────────────────────────────────────────────

def insert_health_metrics(snapshot: HealthMetricsSnapshot) -> HealthMetricsSnapshot:
    return _insert_with_id("health_metrics", snapshot)


def get_latest_health_metrics(device_id: int) -> HealthMetricsSnapshot | None:
    return _fetch_one(
        HealthMetricsSnapshot,
        "SELECT * FROM health_metrics WHERE device_id = ? ORDER BY timestamp DESC, id DESC LIMIT 1",
        (device_id,),
    )


def get_health_metrics(device_id: int, limit: int = 100) -> list[HealthMetricsSnapshot]:
    return _fetch_all(
        HealthMetricsSnapshot,
        "SELECT * FROM health_metrics WHERE device_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
        (device_id, limit),
    )


def get_health_metrics_frame(device_id: int, limit: int = 100) -> pd.DataFrame:
    """Newest-first snapshot history as a DataFrame (missing values are NaN)."""
    conn = _get_conn()
    with _lock:
        df = pd.read_sql_query(
            """SELECT * FROM health_metrics
               WHERE device_id = ?
               ORDER BY timestamp DESC, id DESC
               LIMIT ?""",
            conn,
            params=(device_id, limit),
        )
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, format="ISO8601")
    return df


# ── Issues ────────────────────────────────────────────────────────────────────

def insert_issue(issue: MaintenanceIssue) -> MaintenanceIssue:
    return _insert_with_id("maintenance_issues", issue)


def get_issue(issue_id: int) -> MaintenanceIssue | None:
    return _fetch_one(MaintenanceIssue, "SELECT * FROM maintenance_issues WHERE id = ?", (issue_id,))


def get_device_issues(device_id: int) -> list[MaintenanceIssue]:
    return _fetch_all(
        MaintenanceIssue,
        "SELECT * FROM maintenance_issues WHERE device_id = ? ORDER BY detected_at DESC, id DESC",
        (device_id,),
    )


def get_issues_for_devices(device_ids: Iterable[int]) -> list[MaintenanceIssue]:
    placeholders, params = _in_clause(device_ids)
    if not params:
        return []
    return _fetch_all(
        MaintenanceIssue,
        f"SELECT * FROM maintenance_issues WHERE device_id IN ({placeholders}) ORDER BY id",
        params,
    )


def list_issues(
    limit: int = 100,
    offset: int = 0,
    status: str | None = None,
    severity: str | None = None,
) -> list[MaintenanceIssue]:
    """Fetch issues with optional filters."""
    where = ["1 = 1"]
    params: list = []
    if status:
        where.append("status = ?")
        params.append(status)
    if severity:
        where.append("severity = ?")
        params.append(severity)
    params += [limit, offset]
    return _fetch_all(
        MaintenanceIssue,
        f"""SELECT * FROM maintenance_issues WHERE {' AND '.join(where)}
            ORDER BY detected_at DESC, id DESC LIMIT ? OFFSET ?""",
        params,
    )


def complete_issue(
    issue_id: int,
    user_id: int,
    resolution: str,
    notes: str | None,
    cost: float | None,
    resolved_at: datetime,
) -> bool:
    """Mark an issue completed. Returns False if it was missing or already completed."""
    conn = _get_conn()
    with _lock, conn:
        cur = conn.execute(
            """UPDATE maintenance_issues
               SET status = ?, resolved_at = ?, resolved_by = ?, resolution = ?,
                   resolution_notes = ?, maintenance_cost = ?
               WHERE id = ? AND status != ?""",
            (
                IssueStatus.COMPLETED.value,
                _ts(resolved_at),
                user_id,
                resolution,
                notes,
                cost,
                issue_id,
                IssueStatus.COMPLETED.value,
            ),
        )
        return cur.rowcount == 1


# ── Alerts ────────────────────────────────────────────────────────────────────

def insert_alert(alert: MaintenanceAlert) -> MaintenanceAlert:
    return _insert_with_id("maintenance_alerts", alert)


def get_alert(alert_id: int) -> MaintenanceAlert | None:
    return _fetch_one(MaintenanceAlert, "SELECT * FROM maintenance_alerts WHERE id = ?", (alert_id,))


def get_device_alerts(device_id: int, limit: int | None = None) -> list[MaintenanceAlert]:
    sql = "SELECT * FROM maintenance_alerts WHERE device_id = ? ORDER BY triggered_at DESC, id DESC"
    params: list = [device_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return _fetch_all(MaintenanceAlert, sql, params)


def get_alerts_for_devices(device_ids: Iterable[int]) -> list[MaintenanceAlert]:
    placeholders, params = _in_clause(device_ids)
    if not params:
        return []
    return _fetch_all(
        MaintenanceAlert,
        f"SELECT * FROM maintenance_alerts WHERE device_id IN ({placeholders}) ORDER BY id",
        params,
    )


def list_alerts(
    limit: int = 100,
    offset: int = 0,
    severity: str | None = None,
    include_acknowledged: bool = False,
) -> list[MaintenanceAlert]:
    """Fetch alerts with optional filters (unacknowledged only by default)."""
    where = ["1 = 1"]
    params: list = []
    if severity:
        where.append("severity = ?")
        params.append(severity)
    if not include_acknowledged:
        where.append("acknowledged_at IS NULL")
    params += [limit, offset]
    return _fetch_all(
        MaintenanceAlert,
        f"""SELECT * FROM maintenance_alerts WHERE {' AND '.join(where)}
            ORDER BY triggered_at DESC, id DESC LIMIT ? OFFSET ?""",
        params,
    )


def stamp_alert_acknowledged(alert_id: int, user_id: int, acknowledged_at: datetime) -> bool:
    """Stamp the acknowledgement once. Returns False if already stamped or missing."""
    conn = _get_conn()
    with _lock, conn:
        cur = conn.execute(
            """UPDATE maintenance_alerts
               SET acknowledged_at = ?, acknowledged_by = ?
               WHERE id = ? AND acknowledged_at IS NULL""",
            (_ts(acknowledged_at), user_id, alert_id),
        )
        return cur.rowcount == 1


# ── Thresholds ────────────────────────────────────────────────────────────────

def insert_threshold(threshold: MaintenanceThreshold) -> MaintenanceThreshold:
    return _insert_with_id("maintenance_thresholds", threshold)


def get_enabled_thresholds(device_id: int) -> list[MaintenanceThreshold]:
    return _fetch_all(
        MaintenanceThreshold,
        "SELECT * FROM maintenance_thresholds WHERE device_id = ? AND enabled = 1 ORDER BY id",
        (device_id,),
    )


# ── Schedules ─────────────────────────────────────────────────────────────────

def insert_schedule(schedule: MaintenanceSchedule) -> MaintenanceSchedule:
    return _insert_with_id("maintenance_schedules", schedule)


def get_device_schedules(device_id: int) -> list[MaintenanceSchedule]:
    return _fetch_all(
        MaintenanceSchedule,
        "SELECT * FROM maintenance_schedules WHERE device_id = ? ORDER BY next_due_date, id",
        (device_id,),
    )


# ── Predictions ───────────────────────────────────────────────────────────────

def insert_prediction(prediction: MaintenancePrediction) -> MaintenancePrediction:
    return _insert_with_id("maintenance_predictions", prediction)


def get_device_predictions(device_id: int) -> list[MaintenancePrediction]:
    return _fetch_all(
        MaintenancePrediction,
        "SELECT * FROM maintenance_predictions WHERE device_id = ? ORDER BY id DESC",
        (device_id,),
    )
