"""Threshold classification of readings for display."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from models.records import AirQualityData, AirQualityStatus, SensorReading, Thresholds

# Headroom past the unhealthy bound before the display scale saturates.
SCALE_HEADROOM = 1.5


@dataclass(frozen=True, slots=True)
class Classification:
    status: AirQualityStatus
    percentage: float


def classify(value: float, thresholds: Optional[Thresholds]) -> Classification:
    if thresholds is None:
        return Classification(status=AirQualityStatus.good, percentage=0.0)

    if value > thresholds.unhealthy:
        status = AirQualityStatus.unhealthy
    elif value > thresholds.moderate:
        status = AirQualityStatus.moderate
    else:
        status = AirQualityStatus.good

    scale = thresholds.unhealthy * SCALE_HEADROOM
    if math.isnan(value):
        ratio = 0.0
    elif scale > 0:
        ratio = min(value / scale, 1.0)
    else:
        ratio = 1.0 if value > 0 else 0.0
    percentage = min(max(ratio * 100.0, 0.0), 100.0)
    return Classification(status=status, percentage=percentage)


def classify_reading(reading: SensorReading) -> Classification:
    return classify(reading.value, reading.thresholds)


def overall_status(data: AirQualityData) -> AirQualityStatus:
    """Worst status across all six channels."""
    return max(
        (classify_reading(reading).status for reading in data.readings()),
        key=lambda status: status.severity,
    )
