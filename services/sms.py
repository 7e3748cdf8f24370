"""SMS dispatch of alerts and reports through the Twilio Messages API."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import httpx

from app.schemas import AnalysisResponse, SmsResult
from models.records import AirQualityData, AlertEvent
from settings import get_settings

logger = logging.getLogger(__name__)

TWILIO_BASE_URL = "https://api.twilio.com/2010-04-01"
MAX_SMS_LENGTH = 160
ELLIPSIS = "..."
BRAND = "BreatheEasy"


def truncate_sms(message: str, limit: int = MAX_SMS_LENGTH) -> str:
    if len(message) <= limit:
        return message
    return message[: limit - len(ELLIPSIS)] + ELLIPSIS


def build_alert_message(event: AlertEvent, language: str = "en") -> str:
    value = f"{event.current_value:.1f}{event.unit}"
    threshold = f"{event.threshold:.1f}{event.unit}"
    if language == "fr":
        message = f"Alerte {BRAND}: {event.pollutant} ({value}) dépasse le seuil ({threshold})."
    else:
        message = f"{BRAND} Alert: {event.pollutant} ({value}) is above threshold ({threshold})."
    return truncate_sms(message)


def build_report_message(
    data: AirQualityData, analysis: AnalysisResponse, language: str = "en"
) -> str:
    stamp = data.timestamp.strftime("%Y-%m-%d %H:%M")
    co = f"{data.co.value:.1f}"
    vocs = f"{data.vocs.value:.1f}"
    pm2_5 = f"{data.pm2_5.value:.0f}"
    pm10 = f"{data.pm10.value:.0f}"
    if language == "fr":
        message = (
            f"Rapport Air {stamp}: CO {co}ppm, VOC {vocs}ppm, PM2.5 {pm2_5}µg/m³, "
            f"PM10 {pm10}µg/m³. Santé: {analysis.health_impact}. "
            f"Action: {'; '.join(analysis.recommendations)}."
        )
    else:
        message = (
            f"Air Report {stamp}: CO {co}ppm, VOCs {vocs}ppm, PM2.5 {pm2_5}µg/m³, "
            f"PM10 {pm10}µg/m³. Health: {analysis.health_impact}. "
            f"Action: {'; '.join(analysis.recommendations)}."
        )
    return truncate_sms(message)


class SmsDispatcher:
    """Sends SMS bodies; every outcome is returned as an ``SmsResult``."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        default_recipient: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.default_recipient = default_recipient
        self._client = http_client or httpx.Client(base_url=TWILIO_BASE_URL, timeout=30.0)

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def close(self) -> None:
        self._client.close()

    def send_alert(
        self, event: AlertEvent, language: str = "en", to: Optional[str] = None
    ) -> SmsResult:
        return self.send(build_alert_message(event, language), to=to, kind="alert")

    def send_report(
        self,
        data: AirQualityData,
        analysis: AnalysisResponse,
        language: str = "en",
        to: Optional[str] = None,
    ) -> SmsResult:
        return self.send(build_report_message(data, analysis, language), to=to, kind="report")

    def send(self, message: str, to: Optional[str] = None, kind: str = "message") -> SmsResult:
        recipient = to or self.default_recipient
        if not recipient:
            reason = "Recipient phone number (CONTROL_UNIT_PHONE or target number) is not set."
            logger.warning("SMS %s not sent.", kind, extra={"reason": reason})
            return SmsResult(status=f"SMS {kind} failed: {reason}", error=reason)
        if not self.configured:
            reason = "Twilio credentials are not fully configured."
            logger.error("SMS %s not sent.", kind, extra={"reason": reason})
            return SmsResult(status=f"SMS {kind} failed: {reason}", error=reason)

        body = truncate_sms(message)
        try:
            response = self._client.post(
                f"/Accounts/{self.account_sid}/Messages.json",
                data={"To": recipient, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "SMS %s request failed.", kind, extra={"recipient": recipient, "reason": str(exc)}
            )
            return SmsResult(
                status=f"Failed to send SMS {kind} to {recipient}. {exc}",
                message_sent=body,
                error=str(exc),
            )

        sid = payload.get("sid") if isinstance(payload, dict) else None
        if response.is_success and sid:
            logger.info("SMS %s sent.", kind, extra={"recipient": recipient, "message_sid": sid})
            return SmsResult(
                status=f"SMS {kind} successfully sent to {recipient}.",
                message_sent=body,
                message_sid=sid,
            )

        error = (payload.get("message") if isinstance(payload, dict) else None) or (
            f"Twilio API responded with status {response.status_code}"
        )
        logger.error("SMS %s rejected.", kind, extra={"recipient": recipient, "reason": error})
        return SmsResult(
            status=f"Failed to send SMS {kind} to {recipient}. {error}",
            message_sent=body,
            error=error,
        )


@lru_cache
def build_default_dispatcher() -> SmsDispatcher:
    settings = get_settings()
    return SmsDispatcher(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        default_recipient=settings.control_unit_phone,
    )
