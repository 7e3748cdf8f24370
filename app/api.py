"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.schemas import (
    ActionsResponse,
    AirQualityResponse,
    AlertEventOut,
    AnalysisRequest,
    AnalysisResponse,
    CustomAlertSettings,
    ForecastResponse,
    LocalityReportResponse,
    SensorReadingOut,
    SensorValues,
    SmsAlertRequest,
    SmsReportRequest,
    SmsResult,
    reading_out,
)
from datastore.alert_settings import AlertSettingsStore, build_default_settings_store
from models.channels import get_channel
from models.records import AirQualityData, AlertEvent, SensorReading
from services.analysis import AirQualityAnalyzer, build_default_analyzer
from services.classifier import classify_reading, overall_status
from services.monitor import LiveMonitor, build_default_monitor
from services.sms import SmsDispatcher, build_default_dispatcher
from storage.realtime_db import MockRealtimeDatabase

router = APIRouter()

NO_DATA_DETAIL = "No sensor data available yet."


def get_monitor() -> LiveMonitor:
    return build_default_monitor()


def get_settings_store() -> AlertSettingsStore:
    return build_default_settings_store()


def get_analyzer() -> AirQualityAnalyzer:
    return build_default_analyzer()


def get_dispatcher() -> SmsDispatcher:
    return build_default_dispatcher()


def _annotate(reading: SensorReading) -> SensorReadingOut:
    classification = classify_reading(reading)
    return reading_out(reading, classification.status, classification.percentage)


def build_air_quality_response(data: AirQualityData, stale: bool = False) -> AirQualityResponse:
    return AirQualityResponse(
        timestamp=data.timestamp,
        overall_status=overall_status(data),
        stale=stale,
        readings={reading.id: _annotate(reading) for reading in data.readings()},
    )


def _require_latest(monitor: LiveMonitor) -> AirQualityData:
    data = monitor.latest
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=NO_DATA_DETAIL,
        )
    return data


def _resolve_values(request: AnalysisRequest, monitor: LiveMonitor) -> SensorValues:
    if request.readings is not None:
        return request.readings
    return SensorValues.from_data(_require_latest(monitor))


@router.get(
    "/readings/current",
    response_model=AirQualityResponse,
    summary="Latest normalized readings with display classification.",
)
async def get_current_readings(
    monitor: LiveMonitor = Depends(get_monitor),
) -> AirQualityResponse:
    data = _require_latest(monitor)
    return build_air_quality_response(data, stale=monitor.stale)


@router.get(
    "/readings/current/{channel}",
    response_model=SensorReadingOut,
    summary="Latest reading for a single channel.",
)
async def get_current_reading(
    channel: str,
    monitor: LiveMonitor = Depends(get_monitor),
) -> SensorReadingOut:
    data = _require_latest(monitor)
    try:
        reading = data.reading(channel)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    return _annotate(reading)


@router.get(
    "/alerts",
    response_model=List[AlertEventOut],
    summary="Custom alerts raised by the latest readings.",
)
async def get_alerts(
    monitor: LiveMonitor = Depends(get_monitor),
) -> List[AlertEventOut]:
    _require_latest(monitor)
    return [AlertEventOut.from_event(event) for event in monitor.current_alerts()]


@router.get(
    "/alert-settings",
    response_model=CustomAlertSettings,
    response_model_exclude_none=True,
    summary="Stored custom alert overrides.",
)
async def get_alert_settings(
    store: AlertSettingsStore = Depends(get_settings_store),
) -> CustomAlertSettings:
    return store.load()


@router.put(
    "/alert-settings",
    response_model=CustomAlertSettings,
    response_model_exclude_none=True,
    summary="Replace the custom alert overrides.",
)
async def put_alert_settings(
    settings: CustomAlertSettings,
    store: AlertSettingsStore = Depends(get_settings_store),
) -> CustomAlertSettings:
    store.save(settings)
    return store.load()


@router.post(
    "/feed/snapshot",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Write a raw snapshot into the in-memory realtime store.",
)
def post_feed_snapshot(
    snapshot: Dict[str, Any] = Body(..., description="Flat record or timestamp-keyed entries."),
    monitor: LiveMonitor = Depends(get_monitor),
) -> Dict[str, str]:
    store = monitor.feed.store
    if not isinstance(store, MockRealtimeDatabase):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Snapshots can only be written to the in-memory feed backend.",
        )
    store.set(monitor.feed.path, snapshot)
    return {"status": "accepted"}


@router.post(
    "/analysis",
    response_model=AnalysisResponse,
    summary="Health impact assessment and recommendations.",
)
def post_analysis(
    request: AnalysisRequest,
    monitor: LiveMonitor = Depends(get_monitor),
    analyzer: AirQualityAnalyzer = Depends(get_analyzer),
) -> AnalysisResponse:
    values = _resolve_values(request, monitor)
    return analyzer.analyze(values, language=request.language)


@router.post(
    "/analysis/locality",
    response_model=LocalityReportResponse,
    summary="Advice for occupants of a general locality.",
)
def post_locality_report(
    request: AnalysisRequest,
    monitor: LiveMonitor = Depends(get_monitor),
    analyzer: AirQualityAnalyzer = Depends(get_analyzer),
) -> LocalityReportResponse:
    values = _resolve_values(request, monitor)
    return analyzer.locality_report(values, language=request.language)


@router.post(
    "/analysis/forecast",
    response_model=ForecastResponse,
    summary="General air quality outlook for the next one to two weeks.",
)
def post_forecast(
    request: AnalysisRequest,
    monitor: LiveMonitor = Depends(get_monitor),
    analyzer: AirQualityAnalyzer = Depends(get_analyzer),
) -> ForecastResponse:
    values = _resolve_values(request, monitor)
    return analyzer.forecast(values, language=request.language)


@router.post(
    "/analysis/actions",
    response_model=ActionsResponse,
    summary="Actions that reduce pollutant presence.",
)
def post_actions(
    request: AnalysisRequest,
    monitor: LiveMonitor = Depends(get_monitor),
    analyzer: AirQualityAnalyzer = Depends(get_analyzer),
) -> ActionsResponse:
    values = _resolve_values(request, monitor)
    return analyzer.recommend_actions(values)


@router.post(
    "/sms/alert",
    response_model=SmsResult,
    summary="Send a short threshold alert by SMS.",
)
def post_sms_alert(
    request: SmsAlertRequest,
    dispatcher: SmsDispatcher = Depends(get_dispatcher),
) -> SmsResult:
    try:
        channel = get_channel(request.channel)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    event = AlertEvent(
        channel=channel.id,
        pollutant=channel.name,
        current_value=request.current_value,
        threshold=request.threshold,
        unit=request.unit or channel.unit,
    )
    return dispatcher.send_alert(event, language=request.language, to=request.target_phone_number)


@router.post(
    "/sms/report",
    response_model=SmsResult,
    summary="Send a report of the latest readings and assessment by SMS.",
)
def post_sms_report(
    request: SmsReportRequest,
    monitor: LiveMonitor = Depends(get_monitor),
    analyzer: AirQualityAnalyzer = Depends(get_analyzer),
    dispatcher: SmsDispatcher = Depends(get_dispatcher),
) -> SmsResult:
    data = _require_latest(monitor)
    analysis = analyzer.analyze(SensorValues.from_data(data), language=request.language)
    return dispatcher.send_report(
        data, analysis, language=request.language, to=request.target_phone_number
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    monitor: LiveMonitor = Depends(get_monitor),
) -> dict[str, Any]:
    return {
        "status": "ok",
        "feed": "stale" if monitor.stale else "live",
        "last_update_at": monitor.last_update_at,
    }


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
