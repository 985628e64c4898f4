"""
assethealth/advisor/diagnostics.py
──────────────────────────────────
Narrative health analysis from an external language model.

Flow:
  device + latest snapshot + recent readings + recent alerts
    → client.complete(system_prompt, payload) → JSON object
    → AdvisorResponse (lenient parsing) → optional MaintenancePrediction

Any failure (missing device or snapshot, timeout, API error, bad JSON,
persistence error) yields Unavailable with a generic fallback analysis;
no prediction is stored in that case.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import openai
from pydantic import BaseModel, ConfigDict, Field, field_validator

from assethealth.config.devices import ADVISOR_SPECIALTY, AFFECTED_COMPONENTS, DeviceType
from assethealth.config.settings import settings
from assethealth.data import store
from assethealth.data.models import Device, MaintenancePrediction

logger = logging.getLogger(__name__)

DEFAULT_REMAINING_LIFE_DAYS = 365
MAX_REMAINING_LIFE_DAYS = 36500
NO_ANALYSIS = "No analysis available"

_LEADING_NUMBER = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)")


# ── Client ────────────────────────────────────────────────────────────────────

class AdvisorClient(Protocol):
    def complete(self, system_prompt: str, payload: dict[str, Any]) -> dict[str, Any]:
        ...


class OpenAIAdvisorClient:
    """Chat-completions client that asks for a JSON object response."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = settings.ADVISOR_MODEL,
        timeout: float = settings.ADVISOR_TIMEOUT_S,
        temperature: float = settings.ADVISOR_TEMPERATURE,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._client = openai.OpenAI(
            api_key=api_key or settings.OPENAI_API_KEY,
            timeout=timeout,
            max_retries=0,
        )

    def complete(self, system_prompt: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": json.dumps(payload)},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
        )
        return json.loads(response.choices[0].message.content or "{}")


# ── Response parsing ──────────────────────────────────────────────────────────

def _leading_number(value: Any) -> float | None:
    """12 → 12.0, "365 days" → 365.0, "n/a" → None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            return float(match.group(1))
    return None


class AdvisorResponse(BaseModel):
    """The advisor's JSON object. Missing or malformed fields fall back to defaults."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    analysis: str = NO_ANALYSIS
    recommendations: list[str] = Field(default_factory=list)
    potential_issues: list[str] = Field(default_factory=list, alias="potentialIssues")
    remaining_life_estimate: str | None = Field(default=None, alias="remainingLifeEstimate")
    remaining_life_days: int = Field(default=DEFAULT_REMAINING_LIFE_DAYS, alias="remainingLifeDays")
    failure_probability: float = Field(default=0.0, alias="failureProbability")
    confidence_score: float = Field(default=70.0, alias="confidenceScore")
    impact_assessment: str = Field(default="", alias="impactAssessment")
    business_impact_score: float = Field(default=50.0, alias="businessImpactScore")

    @field_validator("analysis", mode="before")
    @classmethod
    def _analysis(cls, v: Any) -> str:
        return str(v) if v else NO_ANALYSIS

    @field_validator("recommendations", "potential_issues", mode="before")
    @classmethod
    def _string_list(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v if item is not None]
        return [str(v)]

    @field_validator("remaining_life_estimate", mode="before")
    @classmethod
    def _estimate(cls, v: Any) -> str | None:
        return str(v) if v else None

    @field_validator("remaining_life_days", mode="before")
    @classmethod
    def _days(cls, v: Any) -> int:
        number = _leading_number(v)
        if number is None or int(number) <= 0:
            return DEFAULT_REMAINING_LIFE_DAYS
        return min(int(number), MAX_REMAINING_LIFE_DAYS)

    @field_validator("impact_assessment", mode="before")
    @classmethod
    def _impact(cls, v: Any) -> str:
        return str(v) if v else ""

    @classmethod
    def _percentage(cls, v: Any, default: float) -> float:
        number = _leading_number(v)
        if not number:
            return default
        return min(100.0, max(0.0, number))

    @field_validator("failure_probability", mode="before")
    @classmethod
    def _failure_probability(cls, v: Any) -> float:
        return cls._percentage(v, 0.0)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return cls._percentage(v, 70.0)

    @field_validator("business_impact_score", mode="before")
    @classmethod
    def _business_impact(cls, v: Any) -> float:
        return cls._percentage(v, 50.0)


# ── Outcomes ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HealthAnalysis:
    analysis: str
    recommendations: tuple[str, ...] = ()
    potential_issues: tuple[str, ...] = ()
    remaining_life_estimate: str | None = None


FALLBACK_ANALYSIS = HealthAnalysis(
    analysis="Unable to analyze device health due to an error.",
    recommendations=("Schedule a manual inspection of the system.",),
    potential_issues=("Unknown - system requires manual inspection",),
)


@dataclass(frozen=True)
class Analyzed:
    analysis: HealthAnalysis
    prediction_id: int | None = None


@dataclass(frozen=True)
class Unavailable:
    reason: str
    analysis: HealthAnalysis = FALLBACK_ANALYSIS


AdvisorOutcome = Analyzed | Unavailable


# ── Analysis ──────────────────────────────────────────────────────────────────

def system_prompt(device_type: str) -> str:
    specialty = ADVISOR_SPECIALTY.get(device_type, ADVISOR_SPECIALTY[DeviceType.SOLAR_PV])
    return (
        "You are an expert energy systems analyst specializing in predictive maintenance "
        f"for {specialty}. Analyze the provided data and provide insights on system health, "
        "potential issues, and maintenance recommendations. Respond with a JSON object with "
        "the keys analysis, recommendations, potentialIssues, remainingLifeEstimate, "
        "remainingLifeDays, failureProbability, confidenceScore, impactAssessment and "
        "businessImpactScore."
    )


def build_payload(device: Device) -> dict[str, Any] | None:
    """Device identity plus its latest snapshot, readings and alerts (None if no snapshot)."""
    snapshot = store.get_latest_health_metrics(device.id)
    if snapshot is None:
        return None
    readings = store.get_recent_readings(device.id, settings.ADVISOR_READINGS)
    alerts = store.get_device_alerts(device.id, limit=settings.ADVISOR_ALERTS)
    return {
        "id": device.id,
        "name": device.name,
        "type": device.type,
        "model": device.model,
        "manufacturer": device.manufacturer,
        "healthMetrics": snapshot.model_dump(mode="json"),
        "recentReadings": [r.model_dump(mode="json") for r in readings],
        "alerts": [a.model_dump(mode="json") for a in alerts],
    }


def _store_prediction(device: Device, parsed: AdvisorResponse) -> MaintenancePrediction:
    now = datetime.now(tz=UTC)
    return store.insert_prediction(MaintenancePrediction(
        device_id=device.id,
        metric_name="remaining_useful_life",
        prediction_type="failure",
        prediction_for_timestamp=now + timedelta(days=parsed.remaining_life_days),
        probability_percentage=parsed.failure_probability,
        confidence_score=parsed.confidence_score,
        predicted_value=parsed.remaining_life_days,
        algorithm_used=settings.ADVISOR_MODEL,
        model_version=settings.ADVISOR_MODEL_VERSION,
        affected_components=AFFECTED_COMPONENTS.get(device.type, []),
        recommended_actions=parsed.recommendations,
        potential_impact=parsed.impact_assessment,
        business_impact_score=parsed.business_impact_score,
        created_at=now,
    ))


def get_ai_health_analysis(device_id: int, client: AdvisorClient | None = None) -> AdvisorOutcome:
    """
    Ask the advisor for a narrative analysis of a device.

    A remaining-life estimate in the response is stored as a
    MaintenancePrediction. Never raises.
    """
    try:
        device = store.get_device(device_id)
        if device is None:
            return Unavailable(reason=f"device {device_id} not found")
        payload = build_payload(device)
        if payload is None:
            return Unavailable(reason=f"no health metrics for device {device_id}")

        client = client or OpenAIAdvisorClient()
        raw = client.complete(system_prompt(device.type), payload)
        parsed = AdvisorResponse.model_validate(raw)

        prediction_id = None
        if parsed.remaining_life_estimate:
            prediction_id = _store_prediction(device, parsed).id
    except Exception as exc:
        logger.warning("Advisor analysis unavailable for device %s: %s", device_id, exc, exc_info=True)
        return Unavailable(reason=f"{type(exc).__name__}: {exc}")

    return Analyzed(
        analysis=HealthAnalysis(
            analysis=parsed.analysis,
            recommendations=tuple(parsed.recommendations),
            potential_issues=tuple(parsed.potential_issues),
            remaining_life_estimate=parsed.remaining_life_estimate,
        ),
        prediction_id=prediction_id,
    )
