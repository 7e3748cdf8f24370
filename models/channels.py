"""Static descriptor table for the six pollutant channels reported by the sensor node."""

from __future__ import annotations

from dataclasses import dataclass

from models.records import Thresholds


@dataclass(frozen=True, slots=True)
class ChannelDescriptor:
    id: str
    field: str
    name: str
    unit: str
    color: str
    icon_name: str
    thresholds: Thresholds


PPM = "ppm"
MICROGRAMS_PER_M3 = "µg/m³"

CHANNELS: tuple[ChannelDescriptor, ...] = (
    ChannelDescriptor(
        id="co",
        field="CO_ppm",
        name="Carbon Monoxide",
        unit=PPM,
        color="#FF6B6B",
        icon_name="FlaskConical",
        thresholds=Thresholds(moderate=4.5, unhealthy=9.5),
    ),
    ChannelDescriptor(
        id="vocs",
        field="VOCs_ppm",
        name="Volatile Organic Compounds",
        unit=PPM,
        color="#4ECDC4",
        icon_name="Cloud",
        thresholds=Thresholds(moderate=0.5, unhealthy=3.0),
    ),
    ChannelDescriptor(
        id="ch4_lpg",
        field="CH4_LPG_ppm",
        name="CH4/LPG",
        unit=PPM,
        color="#45B7D1",
        icon_name="Flame",
        thresholds=Thresholds(moderate=5000, unhealthy=10000),
    ),
    ChannelDescriptor(
        id="pm1_0",
        field="PM1_0_ug_m3",
        name="PM1.0",
        unit=MICROGRAMS_PER_M3,
        color="#96CEB4",
        icon_name="Layers",
        thresholds=Thresholds(moderate=10, unhealthy=25),
    ),
    ChannelDescriptor(
        id="pm2_5",
        field="PM2_5_ug_m3",
        name="PM2.5",
        unit=MICROGRAMS_PER_M3,
        color="#FFEAA7",
        icon_name="Layers",
        thresholds=Thresholds(moderate=12, unhealthy=35.5),
    ),
    ChannelDescriptor(
        id="pm10",
        field="PM10_ug_m3",
        name="PM10",
        unit=MICROGRAMS_PER_M3,
        color="#DDA0DD",
        icon_name="Layers",
        thresholds=Thresholds(moderate=54, unhealthy=154),
    ),
)

CHANNELS_BY_ID = {channel.id: channel for channel in CHANNELS}
REQUIRED_FIELDS: tuple[str, ...] = tuple(channel.field for channel in CHANNELS)
# The flat-record probe field.
PROBE_FIELD = CHANNELS_BY_ID["ch4_lpg"].field


def get_channel(channel_id: str) -> ChannelDescriptor:
    try:
        return CHANNELS_BY_ID[channel_id]
    except KeyError:
        raise KeyError(f"Unknown channel {channel_id!r}.") from None
