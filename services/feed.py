"""Realtime feed subscription: raw snapshots in, normalized readings out."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, Optional

from models.records import AirQualityData
from services.normalizer import normalize_record
from services.resolver import resolve_snapshot
from settings import get_settings
from storage.realtime_db import ListenerHandle, RealtimeStore, build_default_store

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[Optional[AirQualityData]], None]
Unsubscribe = Callable[[], None]


def _noop() -> None:
    return None


class _Subscription:
    """One listener registration; owns its own lifecycle state."""

    def __init__(self, path: str, on_update: UpdateCallback) -> None:
        self.path = path
        self._on_update = on_update
        self._handle: Optional[ListenerHandle] = None
        self._active = True
        self._lock = Lock()

    def attach(self, handle: ListenerHandle) -> None:
        with self._lock:
            if self._active:
                self._handle = handle
                return
        handle.close()

    def on_change(self, raw: Any) -> None:
        if not self._active:
            return
        try:
            record = resolve_snapshot(raw)
            if record is None:
                logger.warning(
                    "Snapshot carried no complete sensor record.",
                    extra={"feed_path": self.path},
                )
                data = None
            else:
                data = normalize_record(record)
        except Exception as exc:  # noqa: BLE001 - never raise into the transport
            logger.exception(
                "Failed to process feed snapshot.",
                extra={"feed_path": self.path, "reason": str(exc)},
            )
            data = None
        self._deliver(data)

    def on_error(self, error: BaseException) -> None:
        logger.error(
            "Realtime feed error.",
            extra={"feed_path": self.path, "reason": str(error)},
        )
        self._deliver(None)

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
        logger.info("Unsubscribed from realtime feed.", extra={"feed_path": self.path})

    def _deliver(self, data: Optional[AirQualityData]) -> None:
        if not self._active:
            return
        try:
            self._on_update(data)
        except Exception as exc:  # noqa: BLE001 - subscriber errors stay local
            logger.exception(
                "Feed subscriber raised.",
                extra={"feed_path": self.path, "reason": str(exc)},
            )


class FeedClient:
    """Subscribes to a fixed store path and emits ``AirQualityData`` or None."""

    def __init__(self, store: Optional[RealtimeStore], path: str = "/") -> None:
        self.store = store
        self.path = path

    def subscribe(self, on_update: UpdateCallback) -> Unsubscribe:
        """Register ``on_update`` and return an idempotent disposer.

        When no store is configured ``on_update(None)`` is called once and the
        disposer does nothing.
        """
        if self.store is None:
            logger.error("Realtime store is not configured.", extra={"feed_path": self.path})
            on_update(None)
            return _noop

        subscription = _Subscription(self.path, on_update)
        try:
            handle = self.store.listen(self.path, subscription.on_change, subscription.on_error)
        except Exception as exc:  # noqa: BLE001 - connection failures mean no data
            subscription.on_error(exc)
            return subscription.unsubscribe
        subscription.attach(handle)
        logger.info("Subscribed to realtime feed.", extra={"feed_path": self.path})
        return subscription.unsubscribe


@lru_cache
def build_default_feed_client() -> FeedClient:
    settings = get_settings()
    return FeedClient(store=build_default_store(), path=settings.feed_path)
