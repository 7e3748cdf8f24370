"""Human-readable air quality assessments from a generative text model.

Two modes are supported:

- ``mock``: deterministic text derived from the static channel thresholds,
  offline and always available.
- ``gemini``: the Gemini ``generateContent`` REST endpoint. Retriable
  failures (HTTP 503, model overload) are retried with exponential backoff.
  Any failure, or a reply that does not contain the expected JSON object,
  falls back to the threshold-derived text.
"""

from __future__ import annotations

import json
import logging
import re
import time
from functools import lru_cache
from typing import Callable, List, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.schemas import (
    ActionsResponse,
    AnalysisResponse,
    ForecastResponse,
    LocalityReportResponse,
    SensorValues,
)
from models.channels import CHANNELS
from models.records import AirQualityStatus
from services.classifier import Classification, classify
from settings import get_settings

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_RETRIABLE_MARKERS = ("503", "overloaded", "service unavailable")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


class GenerationError(Exception):
    """The model replied, but not with usable text."""


class GeminiClient:
    """Minimal HTTP client for Gemini text generation."""

    def __init__(
        self,
        api_key: str,
        model: str,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = http_client or httpx.Client(base_url=GEMINI_BASE_URL, timeout=60.0)

    def close(self) -> None:
        self._client.close()

    def generate(self, prompt: str) -> str:
        response = self._client.post(
            f"/models/{self._model}:generateContent",
            headers={"x-goog-api-key": self._api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        response.raise_for_status()
        try:
            parts = response.json()["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise GenerationError("Model response did not contain text.") from exc


def is_retriable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 503:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RETRIABLE_MARKERS)


def extract_json(text: str) -> Optional[dict]:
    """Parse the outermost ``{...}`` span of ``text``; None when absent or invalid."""
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class _AnalysisPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    overall_status: AirQualityStatus = Field(alias="overallStatus")
    summary: str
    health_impact: str = Field(alias="healthImpact")
    recommendations: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list, alias="riskFactors")


class _LocalityPayload(BaseModel):
    locality_specific_advice: str = Field(alias="localitySpecificAdvice")


class _ForecastPayload(BaseModel):
    weekly_forecast: str = Field(alias="weeklyForecast")


class _ActionsPayload(BaseModel):
    actions: List[str]


_READINGS_BLOCK = (
    "CO (Carbon Monoxide): {co} ppm\n"
    "VOCs (Volatile Organic Compounds): {vocs} ppm\n"
    "CH4/LPG (Methane/Liquefied Petroleum Gas): {ch4_lpg} ppm\n"
    "PM1.0: {pm1_0} µg/m³\n"
    "PM2.5: {pm2_5} µg/m³\n"
    "PM10: {pm10} µg/m³\n"
)

ANALYSIS_PROMPT = (
    "Analyze the following air quality sensor readings.\n\n"
    + _READINGS_BLOCK
    + "\nReply in {language} with only this JSON object, as plain text without markdown:\n"
    '{{"overallStatus": "good|moderate|unhealthy", "summary": "...", '
    '"healthImpact": "...", "recommendations": ["..."], "riskFactors": ["..."]}}\n'
    "Consider WHO and EPA air quality guidelines."
)

LOCALITY_PROMPT = (
    "Based on these readings from a general urban or suburban area, give practical advice "
    "for the occupants of the locality.\n\n"
    + _READINGS_BLOCK
    + '\nReply in {language} with only this JSON object: {{"localitySpecificAdvice": "..."}}'
)

FORECAST_PROMPT = (
    "Give a brief, advisory air quality forecast for the next one to two weeks for a generic "
    "urban area, based on typical seasonal patterns.\n"
    "Current context: CO {co} ppm, VOCs {vocs} ppm, PM2.5 {pm2_5} µg/m³.\n"
    'Reply in {language} with only this JSON object: {{"weeklyForecast": "..."}}'
)

ACTIONS_PROMPT = (
    "List clear, concise actions to reduce the presence of pollutants for these readings, "
    "considering ventilation, air purifiers, indoor combustion sources, cleaning products, "
    "HVAC maintenance and sealing gaps.\n\n"
    + _READINGS_BLOCK
    + '\nReply with only this JSON object: {{"actions": ["..."]}}'
)

_HEALTH_IMPACT = {
    AirQualityStatus.good: "Air quality is generally acceptable for most people.",
    AirQualityStatus.moderate: (
        "Air quality is acceptable, but some pollutants may be a concern for sensitive people."
    ),
    AirQualityStatus.unhealthy: (
        "Air quality may pose health risks, especially for sensitive individuals."
    ),
}

_RECOMMENDATIONS = {
    AirQualityStatus.good: [
        "Continue monitoring air quality",
        "Maintain good ventilation",
    ],
    AirQualityStatus.moderate: [
        "Sensitive individuals should limit prolonged outdoor exertion",
        "Ensure good indoor ventilation",
        "Monitor symptoms if you have respiratory conditions",
    ],
    AirQualityStatus.unhealthy: [
        "Limit outdoor activities",
        "Use air purifiers indoors",
        "Consider wearing masks outdoors",
        "Seek medical advice if experiencing symptoms",
    ],
}

_LOCALITY_ADVICE = {
    AirQualityStatus.good: "Conditions are suitable for normal indoor and outdoor activities.",
    AirQualityStatus.moderate: (
        "Sensitive residents should reduce prolonged exertion and keep living spaces ventilated."
    ),
    AirQualityStatus.unhealthy: (
        "Residents should limit time outdoors, keep windows closed near pollution sources "
        "and run air purifiers where available."
    ),
}

_FORECAST_TEXT = (
    "No model forecast is available. Expect conditions similar to current readings, "
    "with possible short-lived increases during calm or cold weather."
)

_CHANNEL_ACTIONS = {
    "co": "Check gas appliances and heaters for incomplete combustion and ventilate the area",
    "vocs": "Avoid solvent-based cleaning products and increase fresh air exchange",
    "ch4_lpg": "Inspect gas lines and cylinders for leaks and avoid open flames",
    "pm1_0": "Run a HEPA air purifier and reduce indoor smoking or burning",
    "pm2_5": "Run a HEPA air purifier and keep windows closed during outdoor pollution peaks",
    "pm10": "Reduce dust sources and clean surfaces with a damp cloth",
}


def classify_values(values: SensorValues) -> dict[str, Classification]:
    return {
        channel.id: classify(getattr(values, channel.id), channel.thresholds)
        for channel in CHANNELS
    }


def _worst(classifications: dict[str, Classification]) -> AirQualityStatus:
    return max(
        (item.status for item in classifications.values()),
        key=lambda status: status.severity,
    )


def fallback_analysis(values: SensorValues) -> AnalysisResponse:
    classifications = classify_values(values)
    status = _worst(classifications)
    risk_factors = [
        f"{channel.name} {getattr(values, channel.id)} {channel.unit} ({classifications[channel.id].status.value})"
        for channel in CHANNELS
        if classifications[channel.id].status is not AirQualityStatus.good
    ]
    return AnalysisResponse(
        overall_status=status,
        summary=(
            "Air quality analysis based on sensor readings. "
            f"CO: {values.co}ppm, PM2.5: {values.pm2_5}µg/m³, PM10: {values.pm10}µg/m³"
        ),
        health_impact=_HEALTH_IMPACT[status],
        recommendations=list(_RECOMMENDATIONS[status]),
        risk_factors=risk_factors,
        source="fallback",
    )


def fallback_actions(values: SensorValues) -> List[str]:
    classifications = classify_values(values)
    actions = [
        _CHANNEL_ACTIONS[channel_id]
        for channel_id, item in classifications.items()
        if item.status is not AirQualityStatus.good
    ]
    return actions or list(_RECOMMENDATIONS[AirQualityStatus.good])


class AirQualityAnalyzer:
    """Runs the assessment prompts and guarantees a usable answer."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        max_attempts: int = 6,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.generator = generator
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self._sleep = sleep

    @property
    def mode(self) -> str:
        return "mock" if self.generator is None else "gemini"

    def analyze(self, values: SensorValues, language: str = "en") -> AnalysisResponse:
        prompt = ANALYSIS_PROMPT.format(language=language, **values.model_dump())
        payload = self._generate(prompt, _AnalysisPayload)
        if payload is None:
            return fallback_analysis(values)
        return AnalysisResponse(**payload.model_dump(), source="model")

    def locality_report(self, values: SensorValues, language: str = "en") -> LocalityReportResponse:
        prompt = LOCALITY_PROMPT.format(language=language, **values.model_dump())
        payload = self._generate(prompt, _LocalityPayload)
        if payload is None:
            status = _worst(classify_values(values))
            return LocalityReportResponse(
                locality_specific_advice=_LOCALITY_ADVICE[status], source="fallback"
            )
        return LocalityReportResponse(
            locality_specific_advice=payload.locality_specific_advice, source="model"
        )

    def forecast(self, values: SensorValues, language: str = "en") -> ForecastResponse:
        prompt = FORECAST_PROMPT.format(language=language, **values.model_dump())
        payload = self._generate(prompt, _ForecastPayload)
        if payload is None:
            return ForecastResponse(weekly_forecast=_FORECAST_TEXT, source="fallback")
        return ForecastResponse(weekly_forecast=payload.weekly_forecast, source="model")

    def recommend_actions(self, values: SensorValues) -> ActionsResponse:
        prompt = ACTIONS_PROMPT.format(**values.model_dump())
        payload = self._generate(prompt, _ActionsPayload)
        if payload is None or not payload.actions:
            return ActionsResponse(actions=fallback_actions(values), source="fallback")
        return ActionsResponse(actions=payload.actions, source="model")

    def _generate(self, prompt: str, payload_cls: Type[PayloadT]) -> Optional[PayloadT]:
        if self.generator is None:
            return None

        text = self._call_with_retries(prompt)
        if text is None:
            return None
        data = extract_json(text)
        if data is None:
            logger.warning("Model reply contained no JSON object.", extra={"reason": "unparseable"})
            return None
        try:
            return payload_cls.model_validate(data)
        except ValidationError as exc:
            logger.warning("Model reply did not match the expected shape.", extra={"reason": str(exc)})
            return None

    def _call_with_retries(self, prompt: str) -> Optional[str]:
        assert self.generator is not None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.generator.generate(prompt)
            except (httpx.HTTPError, GenerationError) as exc:
                if is_retriable(exc) and attempt < self.max_attempts:
                    delay = self.base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        "Text generation failed, retrying.",
                        extra={"attempt": attempt, "reason": str(exc)},
                    )
                    self._sleep(delay)
                    continue
                logger.error(
                    "Text generation failed.",
                    extra={"attempt": attempt, "reason": str(exc)},
                )
                return None
        return None


@lru_cache
def build_default_analyzer() -> AirQualityAnalyzer:
    settings = get_settings()
    generator: Optional[TextGenerator] = None
    if settings.analyzer_mode == "gemini":
        if settings.gemini_api_key:
            generator = GeminiClient(api_key=settings.gemini_api_key, model=settings.gemini_model)
        else:
            logger.warning("GEMINI_API_KEY is not set; using threshold-derived analysis.")
    return AirQualityAnalyzer(generator=generator, max_attempts=settings.analyzer_max_attempts)
