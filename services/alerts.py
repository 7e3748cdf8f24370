"""Evaluation of live readings against user-configured alert overrides."""

from __future__ import annotations

from app.schemas import CustomAlertSettings
from models.records import AirQualityData, AlertEvent


def evaluate_alerts(current: AirQualityData, settings: CustomAlertSettings) -> list[AlertEvent]:
    """Return one event per enabled override that the live value exceeds.

    Channels without an override never alert here, whatever the static
    display thresholds say.
    """
    events: list[AlertEvent] = []
    for channel_id, override in settings.overrides().items():
        if not override.enabled:
            continue
        reading = current.reading(channel_id)
        if reading.value > override.threshold:
            events.append(
                AlertEvent(
                    channel=channel_id,
                    pollutant=reading.name,
                    current_value=reading.value,
                    threshold=override.threshold,
                    unit=override.unit or reading.unit,
                )
            )
    return events
