"""
assethealth/analytics/health_index.py
─────────────────────────────────────
Device health score (0–100) and the snapshot it is persisted with.

100 = perfect condition, 0 = failure imminent.

Battery (per latest reading, over up to READINGS_WINDOW recent readings):
  score = 100 − capacity fade − SoC penalty − temperature impact

Solar (per latest reading, daylight curve on the site clock):
  score = 100 − age × 0.7 − soiling 2.5 − (0.7 − PR) × 100 when PR < 0.7

RUL (Remaining Useful Life, days):
  score / 100 × (cycle limit − observed cycles), one cycle ≈ one day.

Device types without a model get a fixed 85 and no snapshot.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime

import numpy as np
import pandas as pd

from assethealth.config.devices import (
    BATTERY_MODEL,
    DEFAULT_SCORE_BATTERY_ERROR,
    DEFAULT_SCORE_NO_DATA,
    DEFAULT_SCORE_SOLAR_ERROR,
    MAX_CYCLE_LIMIT,
    SOLAR_MODEL,
    BatteryModelParams,
    BatterySettings,
    DeviceType,
    SolarModelParams,
    SolarSettings,
)
from assethealth.config.settings import settings
from assethealth.data import store
from assethealth.data.models import Device, HealthMetricsSnapshot, Reading

logger = logging.getLogger(__name__)


# ── Sub-score helpers ─────────────────────────────────────────────────────────


def clamp_score(score: float) -> float:
    return float(np.clip(score, 0.0, 100.0))


def temperature_impact(temp_c: float, params: BatteryModelParams = BATTERY_MODEL) -> float:
    """
    Score penalty for operating temperature.
    0 inside the optimal band; heat is penalized more steeply than cold.
    """
    if params.temp_optimal_low_c <= temp_c <= params.temp_optimal_high_c:
        return 0.0
    if temp_c > params.temp_optimal_high_c:
        return (temp_c - params.temp_optimal_high_c) * params.temp_high_slope
    return (params.temp_optimal_low_c - temp_c) * params.temp_low_slope


def estimate_cycle_count(reading_count: int, params: BatteryModelParams = BATTERY_MODEL) -> int:
    """Equivalent full cycles implied by `reading_count` hourly readings."""
    return math.floor(reading_count / params.readings_per_day * params.cycles_per_day)


def capacity_fade(cycle_count: int, params: BatteryModelParams = BATTERY_MODEL) -> float:
    """Capacity lost (%), linear in cycle count."""
    return cycle_count / params.fade_reference_cycles * params.fade_reference_pct


def local_hour(ts: datetime, tz: str) -> int:
    """Hour of `ts` on the site clock; naive timestamps are taken as UTC."""
    stamp = pd.Timestamp(ts)
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    return stamp.tz_convert(tz).hour


def estimate_irradiance(hour: int, params: SolarModelParams = SOLAR_MODEL) -> float:
    """Fraction of rated output expected at `hour` (half-sine over daylight)."""
    start, end = params.daylight_start_hour, params.daylight_end_hour
    if hour <= start or hour >= end:
        return 0.0
    return math.sin((hour - start) / (end - start) * math.pi) * params.peak_irradiance


def remaining_useful_life(score: float, observed_cycles: float, max_cycles: int = MAX_CYCLE_LIMIT) -> int:
    remaining = score / 100.0 * (max_cycles - observed_cycles)
    return max(0, round(remaining))


# ── Per-type models ───────────────────────────────────────────────────────────


class DeviceHealthModel:
    """
    Scores one device type from its latest reading and recent history.

    `evaluate` returns the snapshot to persist, or None when the type is
    not modeled. `error_score` is returned if evaluation fails.
    """

    device_type: str = ""
    error_score: float = DEFAULT_SCORE_NO_DATA

    def evaluate(
        self,
        device: Device,
        latest: Reading,
        recent: list[Reading],
        now: datetime,
    ) -> HealthMetricsSnapshot | None:
        raise NotImplementedError


class BatteryHealthModel(DeviceHealthModel):
    device_type = DeviceType.BATTERY_STORAGE
    error_score = DEFAULT_SCORE_BATTERY_ERROR

    def __init__(self, params: BatteryModelParams = BATTERY_MODEL) -> None:
        self.params = params

    def evaluate(self, device, latest, recent, now):
        p = self.params
        device_settings = BatterySettings.model_validate(device.settings)

        soc = latest.state_of_charge if latest.state_of_charge is not None else p.default_soc_pct
        temp = latest.temperature if latest.temperature is not None else p.default_temp_c

        cycles = estimate_cycle_count(len(recent), p)
        fade = capacity_fade(cycles, p)

        score = 100.0 - fade
        if soc < p.soc_low_pct or soc > p.soc_high_pct:
            score -= p.soc_penalty
        score -= temperature_impact(temp, p)
        score = clamp_score(score)

        return HealthMetricsSnapshot(
            device_id=device.id,
            timestamp=now,
            cycle_count=cycles,
            capacity_fading=fade,
            operating_temperature=temp,
            overall_health_score=score,
            remaining_useful_life=remaining_useful_life(score, cycles, device_settings.max_cycle_limit),
        )


class SolarHealthModel(DeviceHealthModel):
    device_type = DeviceType.SOLAR_PV
    error_score = DEFAULT_SCORE_SOLAR_ERROR

    def __init__(self, params: SolarModelParams = SOLAR_MODEL) -> None:
        self.params = params

    def performance_ratio(self, device: Device, reading: Reading, tz: str = "UTC") -> float:
        p = self.params
        capacity = device.capacity or p.default_capacity_kw
        expected = capacity * estimate_irradiance(local_hour(reading.timestamp, tz), p)
        if expected <= 0:
            return p.default_performance_ratio
        return (reading.power or 0.0) / expected

    def evaluate(self, device, latest, recent, now):
        p = self.params
        device_settings = SolarSettings.model_validate(device.settings)

        age_years = max(0, now.year - device_settings.installation_year)
        ratio = self.performance_ratio(device, latest, device_settings.timezone)
        degradation = age_years * p.degradation_pct_per_year

        score = 100.0 - degradation - p.soiling_loss_pct
        if ratio < p.min_performance_ratio:
            score -= (p.min_performance_ratio - ratio) * 100.0
        score = clamp_score(score)

        return HealthMetricsSnapshot(
            device_id=device.id,
            timestamp=now,
            efficiency_ratio=ratio,
            degradation_rate=degradation / age_years if age_years else 0.0,
            soiling_loss_rate=p.soiling_loss_pct,
            overall_health_score=score,
            remaining_useful_life=remaining_useful_life(score, age_years * 365),
        )


class UnmodeledHealthModel(DeviceHealthModel):
    def evaluate(self, device, latest, recent, now):
        return None


HEALTH_MODELS: dict[str, DeviceHealthModel] = {
    DeviceType.BATTERY_STORAGE: BatteryHealthModel(),
    DeviceType.SOLAR_PV: SolarHealthModel(),
}
UNMODELED = UnmodeledHealthModel()


# ── Public API ────────────────────────────────────────────────────────────────


def compute_health_score(device_id: int, device_type: str) -> float:
    """
    Return the device's current health score, computing and persisting a
    snapshot when the latest one carries no score. Never raises: missing
    data yields 85, a failed battery/solar evaluation yields 75/80.
    """
    model = HEALTH_MODELS.get(device_type, UNMODELED)
    try:
        snapshot = store.get_latest_health_metrics(device_id)
        if snapshot is not None and snapshot.overall_health_score:
            return snapshot.overall_health_score

        if model is UNMODELED:
            return DEFAULT_SCORE_NO_DATA

        latest = store.get_latest_reading(device_id)
        if latest is None:
            return DEFAULT_SCORE_NO_DATA
        device = store.get_device(device_id)
        if device is None:
            return DEFAULT_SCORE_NO_DATA

        recent = store.get_recent_readings(device_id, settings.READINGS_WINDOW)
        snapshot = model.evaluate(device, latest, recent, datetime.now(tz=UTC))
        if snapshot is None:
            return DEFAULT_SCORE_NO_DATA
        store.insert_health_metrics(snapshot)
    except Exception:
        logger.warning("Health evaluation failed for device %s (%s)", device_id, device_type, exc_info=True)
        return model.error_score

    logger.debug("Device %s scored %.2f (%s)", device_id, snapshot.overall_health_score, snapshot.health_status.value)
    return snapshot.overall_health_score
