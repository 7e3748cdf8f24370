"""Mapping of a resolved raw record onto the typed reading set."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from models.channels import CHANNELS, ChannelDescriptor
from models.records import AirQualityData, RawSensorRecord, SensorReading


def _to_reading(channel: ChannelDescriptor, record: RawSensorRecord) -> SensorReading:
    return SensorReading(
        id=channel.id,
        name=channel.name,
        value=record[channel.field],
        unit=channel.unit,
        color=channel.color,
        icon_name=channel.icon_name,
        thresholds=channel.thresholds,
    )


def normalize_record(
    record: RawSensorRecord, captured_at: Optional[datetime] = None
) -> AirQualityData:
    """Build an ``AirQualityData`` from a structurally valid record.

    Values are passed through unchanged. ``captured_at`` defaults to the
    current UTC time and is never taken from the snapshot itself.
    """
    timestamp = captured_at or datetime.now(timezone.utc)
    readings = {channel.id: _to_reading(channel, record) for channel in CHANNELS}
    return AirQualityData(timestamp=timestamp, **readings)
