"""Pydantic schemas for the HTTP API layer and persisted settings."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import AirQualityData, AirQualityStatus, AlertEvent, SensorReading


class AlertOverride(BaseModel):
    """User threshold for a single channel."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    threshold: float = Field(..., ge=0)
    unit: str = ""


class CustomAlertSettings(BaseModel):
    """Per-channel alert overrides, currently offered for CO and PM2.5."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    co: Optional[AlertOverride] = None
    pm2_5: Optional[AlertOverride] = None

    def overrides(self) -> Dict[str, AlertOverride]:
        return {
            name: override
            for name in type(self).model_fields
            if (override := getattr(self, name)) is not None
        }


class ThresholdsOut(BaseModel):
    moderate: float
    unhealthy: float


class SensorReadingOut(BaseModel):
    """A channel reading annotated with its display classification."""

    id: str
    name: str
    value: float
    unit: str
    color: str
    icon_name: str
    thresholds: Optional[ThresholdsOut] = None
    status: AirQualityStatus
    percentage: float = Field(..., ge=0, le=100)


class AirQualityResponse(BaseModel):
    timestamp: datetime
    overall_status: AirQualityStatus
    stale: bool = Field(
        default=False, description="True when the latest snapshot carried no valid record."
    )
    readings: Dict[str, SensorReadingOut]


class AlertEventOut(BaseModel):
    channel: str
    pollutant: str
    current_value: float
    threshold: float
    unit: str
    severity: str

    @classmethod
    def from_event(cls, event: AlertEvent) -> "AlertEventOut":
        return cls(
            channel=event.channel,
            pollutant=event.pollutant,
            current_value=event.current_value,
            threshold=event.threshold,
            unit=event.unit,
            severity=event.severity,
        )


class SensorValues(BaseModel):
    """The six numeric readings sent to the text-generation model."""

    co: float
    vocs: float
    ch4_lpg: float
    pm1_0: float
    pm2_5: float
    pm10: float

    @classmethod
    def from_data(cls, data: AirQualityData) -> "SensorValues":
        return cls(**data.values())


class AnalysisRequest(BaseModel):
    readings: Optional[SensorValues] = Field(
        default=None, description="Explicit readings; the latest live data is used when omitted."
    )
    language: str = "en"


class AnalysisResponse(BaseModel):
    overall_status: AirQualityStatus
    summary: str
    health_impact: str
    recommendations: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    source: str = Field(..., description="'model' or 'fallback'.")


class LocalityReportResponse(BaseModel):
    locality_specific_advice: str
    source: str


class ForecastResponse(BaseModel):
    weekly_forecast: str
    source: str


class ActionsResponse(BaseModel):
    actions: List[str]
    source: str


class SmsAlertRequest(BaseModel):
    channel: str
    current_value: float
    threshold: float
    unit: Optional[str] = None
    language: str = "en"
    target_phone_number: Optional[str] = None


class SmsReportRequest(BaseModel):
    language: str = "en"
    target_phone_number: Optional[str] = None


class SmsResult(BaseModel):
    """Outcome of an SMS dispatch attempt; failures are reported, not raised."""

    status: str
    message_sent: str = ""
    message_sid: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.message_sid is not None and self.error is None


def reading_out(reading: SensorReading, status: AirQualityStatus, percentage: float) -> SensorReadingOut:
    thresholds = None
    if reading.thresholds is not None:
        thresholds = ThresholdsOut(
            moderate=reading.thresholds.moderate,
            unhealthy=reading.thresholds.unhealthy,
        )
    return SensorReadingOut(
        id=reading.id,
        name=reading.name,
        value=reading.value,
        unit=reading.unit,
        color=reading.color,
        icon_name=reading.icon_name,
        thresholds=thresholds,
        status=status,
        percentage=percentage,
    )
