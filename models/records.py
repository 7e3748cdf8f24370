"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

RawSensorRecord = Mapping[str, Any]


class AirQualityStatus(str, Enum):
    """Tri-state classification of a reading, ordered by severity."""

    good = "good"
    moderate = "moderate"
    unhealthy = "unhealthy"

    @property
    def severity(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = (AirQualityStatus.good, AirQualityStatus.moderate, AirQualityStatus.unhealthy)


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Display classification bounds; ``moderate`` is expected below ``unhealthy``."""

    moderate: float
    unhealthy: float


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single pollutant channel value with its display metadata."""

    id: str
    name: str
    value: float
    unit: str
    color: str
    icon_name: str
    thresholds: Optional[Thresholds] = None


@dataclass(frozen=True, slots=True)
class AirQualityData:
    """The six channel readings derived from one resolved snapshot."""

    co: SensorReading
    vocs: SensorReading
    ch4_lpg: SensorReading
    pm1_0: SensorReading
    pm2_5: SensorReading
    pm10: SensorReading
    timestamp: datetime

    def readings(self) -> Iterator[SensorReading]:
        yield self.co
        yield self.vocs
        yield self.ch4_lpg
        yield self.pm1_0
        yield self.pm2_5
        yield self.pm10

    def reading(self, channel_id: str) -> SensorReading:
        for reading in self.readings():
            if reading.id == channel_id:
                return reading
        raise KeyError(f"Unknown channel {channel_id!r}.")

    def values(self) -> dict[str, float]:
        return {reading.id: reading.value for reading in self.readings()}


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """A live reading that crossed a user-configured override."""

    channel: str
    pollutant: str
    current_value: float
    threshold: float
    unit: str
    severity: str = "exceeded"
