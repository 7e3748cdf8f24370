"""Live monitoring orchestration: holds the latest readings and fires SMS alerts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, Optional

from datastore.alert_settings import AlertSettingsStore, build_default_settings_store
from models.records import AirQualityData, AlertEvent
from services.alerts import evaluate_alerts
from services.feed import FeedClient, build_default_feed_client
from services.sms import SmsDispatcher, build_default_dispatcher
from settings import get_settings

logger = logging.getLogger(__name__)


class LiveMonitor:
    """Coordinates the feed subscription, alert evaluation and dispatch.

    A ``None`` delivery leaves the previous data in place and marks the feed
    stale. Each channel sends one SMS when it starts exceeding its override and
    re-arms once it drops back under it.
    """

    def __init__(
        self,
        feed: FeedClient,
        settings_store: AlertSettingsStore,
        dispatcher: Optional[SmsDispatcher] = None,
        language: str = "en",
    ) -> None:
        self.feed = feed
        self.settings_store = settings_store
        self.dispatcher = dispatcher
        self.language = language
        self._latest: Optional[AirQualityData] = None
        self._stale = True
        self._last_update_at: Optional[datetime] = None
        self._active_alerts: frozenset[str] = frozenset()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = Lock()

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.feed.subscribe(self.handle_update)

    def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    @property
    def latest(self) -> Optional[AirQualityData]:
        with self._lock:
            return self._latest

    @property
    def stale(self) -> bool:
        with self._lock:
            return self._stale

    @property
    def last_update_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_update_at

    def current_alerts(self) -> list[AlertEvent]:
        data = self.latest
        if data is None:
            return []
        return evaluate_alerts(data, self.settings_store.load())

    def handle_update(self, data: Optional[AirQualityData]) -> None:
        with self._lock:
            self._last_update_at = datetime.now(timezone.utc)
            if data is None:
                self._stale = True
                return
            self._latest = data
            self._stale = False

        events = evaluate_alerts(data, self.settings_store.load())
        with self._lock:
            previous = self._active_alerts
            self._active_alerts = frozenset(event.channel for event in events)
        fresh = [event for event in events if event.channel not in previous]
        if events:
            logger.info("Custom alert thresholds exceeded.", extra={"alert_count": len(events)})
        for event in fresh:
            self._dispatch(event)

    def _dispatch(self, event: AlertEvent) -> None:
        if self.dispatcher is None or not self.dispatcher.configured:
            logger.info(
                "Alert not dispatched; SMS is not configured.",
                extra={"channel": event.channel},
            )
            return
        result = self.dispatcher.send_alert(event, language=self.language)
        if result.error:
            logger.warning(
                "Alert SMS failed.", extra={"channel": event.channel, "reason": result.error}
            )


@lru_cache
def build_default_monitor() -> LiveMonitor:
    """Factory that wires the monitor with the configured collaborators."""
    settings = get_settings()
    return LiveMonitor(
        feed=build_default_feed_client(),
        settings_store=build_default_settings_store(),
        dispatcher=build_default_dispatcher(),
        language=settings.alert_language,
    )
