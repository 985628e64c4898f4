"""
assethealth/data/simulator.py
─────────────────────────────
Synthetic telemetry for a demo site (battery + solar + one unmodeled device).

Generates:
  - `days` × 24 hourly readings per device
  - An optional battery overheating event late in the history window
  - A default set of thresholds per device

Design:
  - Reproducible with SIMULATION_SEED for consistent demos
  - Solar output follows a daylight bell between 06:00 and 18:00
  - Battery power swings between charge and discharge; SoC integrates it
  - Power in kW (matches device capacity), energy in kWh per hour
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import numpy as np
import pandas as pd

from assethealth.config.alerts import Severity, ThresholdDirection
from assethealth.config.devices import SOLAR_MODEL, DeviceType
from assethealth.config.settings import settings
from assethealth.data.models import Device, MaintenanceThreshold, Reading

DEMO_SITE_ID = 1

# ── Baseline operating points ─────────────────────────────────────────────────

BASELINES: dict[str, dict] = {
    DeviceType.BATTERY_STORAGE: {
        "power_kw": 3.0,         # peak |charge/discharge|
        "voltage_v": 48.0,
        "temperature_c": 24.0,
        "capacity_kwh": 13.5,
    },
    DeviceType.SOLAR_PV: {
        "power_kw": 5.0,         # rated output at peak irradiance
        "voltage_v": 230.0,
        "temperature_c": 22.0,
        "frequency_hz": 50.0,
    },
}

NOISE: dict[str, dict] = {
    DeviceType.BATTERY_STORAGE: {"power_kw": 0.25, "voltage_v": 0.4, "temperature_c": 0.8},
    DeviceType.SOLAR_PV: {"power_kw": 0.18, "voltage_v": 2.0, "temperature_c": 1.2},
}


@dataclass
class HeatEvent:
    start_hour: int
    duration_hours: int
    peak_rise_c: float   # °C above baseline at the end of the event


def _plan_heat_event(total_hours: int, rng: np.random.Generator) -> HeatEvent:
    """One overheating ramp in the last third of the window."""
    start = int(rng.integers(total_hours * 2 // 3, max(total_hours * 2 // 3 + 1, total_hours - 12)))
    duration = min(int(rng.integers(12, 48)), total_hours - start)
    return HeatEvent(start_hour=start, duration_hours=max(duration, 1), peak_rise_c=float(rng.uniform(8.0, 11.0)))


def _battery_readings(
    timestamps: list[datetime],
    rng: np.random.Generator,
    heat_event: HeatEvent | None,
) -> list[Reading]:
    base = BASELINES[DeviceType.BATTERY_STORAGE]
    noise = NOISE[DeviceType.BATTERY_STORAGE]
    soc = 50.0
    readings: list[Reading] = []

    for hour, ts in enumerate(timestamps):
        # Charge during daylight, discharge in the evening
        phase = np.sin(2 * np.pi * (ts.hour - 6) / 24)
        power = base["power_kw"] * phase + rng.normal(0, noise["power_kw"])
        power = float(np.clip(power, -base["power_kw"], base["power_kw"]))
        soc = float(np.clip(soc + power / base["capacity_kwh"] * 100.0, 0.0, 100.0))

        temp = base["temperature_c"] + rng.normal(0, noise["temperature_c"])
        if heat_event and heat_event.start_hour <= hour < heat_event.start_hour + heat_event.duration_hours:
            progress = (hour - heat_event.start_hour + 1) / heat_event.duration_hours
            temp += progress * heat_event.peak_rise_c

        voltage = base["voltage_v"] + (soc - 50.0) * 0.04 + rng.normal(0, noise["voltage_v"])
        readings.append(Reading(
            device_id=0,
            timestamp=ts,
            power=round(power, 3),
            energy=round(abs(power), 3),
            state_of_charge=round(soc, 2),
            voltage=round(float(voltage), 2),
            current=round(power * 1000.0 / voltage, 2),
            temperature=round(float(np.clip(temp, 20.0, 35.0 if heat_event is None else 45.0)), 2),
        ))
    return readings


def _solar_readings(timestamps: list[datetime], rng: np.random.Generator) -> list[Reading]:
    base = BASELINES[DeviceType.SOLAR_PV]
    noise = NOISE[DeviceType.SOLAR_PV]
    start, end = SOLAR_MODEL.daylight_start_hour, SOLAR_MODEL.daylight_end_hour
    readings: list[Reading] = []

    for ts in timestamps:
        if start <= ts.hour < end:
            bell = np.sin(np.pi * (ts.hour - start) / (end - start))
            power = base["power_kw"] * bell + rng.normal(0, noise["power_kw"])
        else:
            power = 0.0
        power = float(np.clip(power, 0.0, base["power_kw"]))
        temp = base["temperature_c"] + power / base["power_kw"] * 8.0 + rng.normal(0, noise["temperature_c"])
        voltage = base["voltage_v"] + rng.normal(0, noise["voltage_v"])
        readings.append(Reading(
            device_id=0,
            timestamp=ts,
            power=round(power, 3),
            energy=round(power, 3),
            voltage=round(float(voltage), 2),
            current=round(power * 1000.0 / voltage, 2),
            frequency=base["frequency_hz"],
            temperature=round(float(np.clip(temp, 15.0, 35.0)), 2),
        ))
    return readings


# ── Public API ────────────────────────────────────────────────────────────────

def hourly_timestamps(days: int, end: datetime | None = None) -> list[datetime]:
    end_ts = (end or datetime.now(tz=UTC)).replace(minute=0, second=0, microsecond=0)
    total_hours = days * 24
    start_ts = end_ts - timedelta(hours=total_hours - 1)
    return [start_ts + timedelta(hours=h) for h in range(total_hours)]


def generate_device_readings(
    device_type: str,
    device_id: int = 0,
    seed: int = settings.SIMULATION_SEED,
    days: int = settings.HISTORY_DAYS,
    overheat: bool = False,
    end: datetime | None = None,
) -> list[Reading]:
    """
    Generate `days` × 24 hourly readings (oldest first) for one device.
    Unmodeled device types get a flat power/voltage trace.
    """
    rng = np.random.default_rng(seed)
    timestamps = hourly_timestamps(days, end)

    if device_type == DeviceType.BATTERY_STORAGE:
        heat = _plan_heat_event(len(timestamps), rng) if overheat else None
        readings = _battery_readings(timestamps, rng, heat)
    elif device_type == DeviceType.SOLAR_PV:
        readings = _solar_readings(timestamps, rng)
    else:
        readings = [
            Reading(
                device_id=0,
                timestamp=ts,
                power=round(float(rng.uniform(0.0, 7.0)), 3),
                voltage=round(float(230.0 + rng.normal(0, 2.0)), 2),
            )
            for ts in timestamps
        ]

    if device_id:
        readings = [r.model_copy(update={"device_id": device_id}) for r in readings]
    return readings


def default_thresholds(device_type: str) -> list[MaintenanceThreshold]:
    """Starter thresholds on snapshot metrics (device_id filled in on insert)."""
    if device_type == DeviceType.BATTERY_STORAGE:
        return [
            MaintenanceThreshold(
                device_id=0, metric_name="operatingTemperature",
                direction=ThresholdDirection.ABOVE, warning_threshold=32.0,
                severity=Severity.HIGH, alert_message="Battery running hot",
            ),
            MaintenanceThreshold(
                device_id=0, metric_name="overallHealthScore",
                direction=ThresholdDirection.BELOW, warning_threshold=70.0,
                severity=Severity.MEDIUM,
            ),
        ]
    if device_type == DeviceType.SOLAR_PV:
        return [
            MaintenanceThreshold(
                device_id=0, metric_name="efficiencyRatio",
                direction=ThresholdDirection.BETWEEN, warning_threshold=0.0,
                secondary_threshold=0.7, severity=Severity.MEDIUM,
                alert_message="Solar performance ratio degraded",
            ),
        ]
    return []


def generate_demo_site(
    seed: int = settings.SIMULATION_SEED,
    days: int = settings.HISTORY_DAYS,
) -> list[tuple[Device, list[Reading], list[MaintenanceThreshold]]]:
    """Devices for DEMO_SITE_ID with their reading history and thresholds."""
    year = datetime.now(tz=UTC).year
    devices = [
        (Device(name="Battery Bank A", type=DeviceType.BATTERY_STORAGE, model="PW-2",
                manufacturer="Tesla", capacity=13.5, site_id=DEMO_SITE_ID,
                settings={"installationYear": year - 3, "maxCycleLimit": 4000}), True),
        (Device(name="Rooftop Array", type=DeviceType.SOLAR_PV, model="SPR-X22",
                manufacturer="SunPower", capacity=5.0, site_id=DEMO_SITE_ID,
                settings={"installationYear": year - 4}), False),
        (Device(name="Garage Charger", type=DeviceType.EV_CHARGER, model="Wallbox",
                manufacturer="Wallbox", capacity=7.4, site_id=DEMO_SITE_ID), False),
    ]
    site = []
    for offset, (device, overheat) in enumerate(devices):
        readings = generate_device_readings(device.type, seed=seed + offset, days=days, overheat=overheat)
        site.append((device, readings, default_thresholds(device.type)))
    return site


def to_dataframe(readings: list[Reading]) -> pd.DataFrame:
    """Convert a list of Readings to a pandas DataFrame."""
    return pd.DataFrame([r.model_dump() for r in readings])
