"""
assethealth/config/devices.py
─────────────────────────────
Device types, health-model parameters, typed per-type settings, and
maintenance templates.

Battery model (Li-ion rule of thumb):
  ~0.8 equivalent cycles per day of hourly readings
  20% capacity fade after 1000 cycles
  optimal band 15–30 °C; heat penalized harder than cold

Solar model:
  0.7 %/year module degradation, flat 2.5% soiling estimate
  performance ratio below 0.7 is penalized linearly
  daylight hours are read in the site timezone (settings.timezone, default UTC)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeviceType(str, Enum):
    BATTERY_STORAGE = "battery_storage"
    SOLAR_PV = "solar_pv"
    EV_CHARGER = "ev_charger"
    SMART_METER = "smart_meter"
    HEAT_PUMP = "heat_pump"


@dataclass(frozen=True)
class BatteryModelParams:
    readings_per_day: int          # hourly telemetry
    cycles_per_day: float
    fade_reference_cycles: float   # cycles at which fade_reference_pct is lost
    fade_reference_pct: float
    temp_optimal_low_c: float
    temp_optimal_high_c: float
    temp_high_slope: float         # score points per °C above the band
    temp_low_slope: float          # score points per °C below the band
    soc_low_pct: float
    soc_high_pct: float
    soc_penalty: float
    default_soc_pct: float
    default_temp_c: float


@dataclass(frozen=True)
class SolarModelParams:
    degradation_pct_per_year: float
    soiling_loss_pct: float
    min_performance_ratio: float
    default_performance_ratio: float
    daylight_start_hour: int
    daylight_end_hour: int
    peak_irradiance: float          # fraction of rated capacity at solar noon
    default_age_years: int
    default_capacity_kw: float


BATTERY_MODEL = BatteryModelParams(
    readings_per_day=24,
    cycles_per_day=0.8,
    fade_reference_cycles=1000.0,
    fade_reference_pct=20.0,
    temp_optimal_low_c=15.0,
    temp_optimal_high_c=30.0,
    temp_high_slope=1.5,
    temp_low_slope=0.8,
    soc_low_pct=10.0,
    soc_high_pct=90.0,
    soc_penalty=5.0,
    default_soc_pct=50.0,
    default_temp_c=25.0,
)

SOLAR_MODEL = SolarModelParams(
    degradation_pct_per_year=0.7,
    soiling_loss_pct=2.5,
    min_performance_ratio=0.7,
    default_performance_ratio=0.8,
    daylight_start_hour=6,
    daylight_end_hour=18,
    peak_irradiance=0.9,
    default_age_years=2,
    default_capacity_kw=5.0,
)

# Cycle-equivalent lifetime used for remaining-useful-life (1 cycle ≈ 1 day)
MAX_CYCLE_LIMIT = 4000

# ── Fallback scores ───────────────────────────────────────────────────────────
DEFAULT_SCORE_NO_DATA = 85.0       # unmodeled type, missing device or readings
DEFAULT_SCORE_BATTERY_ERROR = 75.0
DEFAULT_SCORE_SOLAR_ERROR = 80.0


# ── Typed device settings ─────────────────────────────────────────────────────

class DeviceSettings(BaseModel):
    """Base for per-type settings; unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: int = Field(default=1, alias="schemaVersion")


class SolarSettings(DeviceSettings):
    installation_year: int = Field(
        default_factory=lambda: datetime.now(tz=UTC).year - SOLAR_MODEL.default_age_years,
        alias="installationYear",
        ge=1950,
        le=2200,
    )
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {v}") from exc
        return v


class BatterySettings(DeviceSettings):
    installation_year: int | None = Field(default=None, alias="installationYear", ge=1950, le=2200)
    max_cycle_limit: int = Field(default=MAX_CYCLE_LIMIT, alias="maxCycleLimit", gt=0)


class GenericSettings(DeviceSettings):
    pass


SETTINGS_MODELS: dict[str, type[DeviceSettings]] = {
    DeviceType.BATTERY_STORAGE: BatterySettings,
    DeviceType.SOLAR_PV: SolarSettings,
}


def parse_device_settings(device_type: str, raw: dict | None) -> DeviceSettings:
    """Validate a raw settings bag against the model for `device_type`."""
    model = SETTINGS_MODELS.get(device_type, GenericSettings)
    return model.model_validate(raw or {})


# ── Display names and advisor context ─────────────────────────────────────────

DEVICE_LABELS: dict[str, str] = {
    DeviceType.BATTERY_STORAGE: "Battery",
    DeviceType.SOLAR_PV: "Solar",
}

ADVISOR_SPECIALTY: dict[str, str] = {
    DeviceType.BATTERY_STORAGE: "battery storage systems",
    DeviceType.SOLAR_PV: "solar PV systems",
}

AFFECTED_COMPONENTS: dict[str, list[str]] = {
    DeviceType.BATTERY_STORAGE: ["battery_cells", "bms"],
    DeviceType.SOLAR_PV: ["panels", "inverter"],
}


# ── Maintenance checklist templates ───────────────────────────────────────────

CHECKLIST_TEMPLATES: dict[str, list[str]] = {
    DeviceType.BATTERY_STORAGE: [
        "Inspect battery connections for corrosion",
        "Check temperature sensors and cooling systems",
        "Verify BMS (Battery Management System) functionality",
        "Test voltage on all cells/modules",
        "Inspect for physical damage or leaks",
        "Check ventilation systems",
        "Clean battery terminals",
        "Verify safety systems",
    ],
    DeviceType.SOLAR_PV: [
        "Clean solar panels",
        "Inspect for damaged or cracked panels",
        "Check mounting hardware",
        "Inspect electrical connections",
        "Test inverter operation",
        "Clear debris from around array",
        "Check for shading issues",
        "Verify monitoring system",
    ],
}

GENERIC_CHECKLIST: list[str] = [
    "Perform general visual inspection",
    "Check electrical connections",
    "Test device operation",
    "Clean device exterior",
    "Verify safety systems",
]
