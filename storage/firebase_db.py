"""Firebase Realtime Database adapter for the feed client."""

from __future__ import annotations

import copy
import logging
from threading import Lock
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, db

from settings import Settings
from storage.realtime_db import ChangeCallback, ErrorCallback, split_path

logger = logging.getLogger(__name__)

_APP_NAME = "air-quality-monitor"


def apply_event(current: Any, event_type: str, path: str, data: Any) -> Any:
    """Return the listener's cached value after a streamed ``put`` or ``patch``."""
    parts = split_path(path)
    if event_type == "patch" and isinstance(data, dict):
        updated = current
        for key, value in data.items():
            updated = _assign(updated, parts + split_path(str(key)), value)
        return updated
    return _assign(current, parts, data)


def _assign(current: Any, parts: list[str], value: Any) -> Any:
    if not parts:
        return copy.deepcopy(value)
    root = current if isinstance(current, dict) else {}
    node = root
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)
    return root


class _FirebaseListener:

    def __init__(self, on_change: ChangeCallback, on_error: Optional[ErrorCallback]) -> None:
        self._on_change = on_change
        self._on_error = on_error
        self._value: Any = None
        self._lock = Lock()
        self._closed = False
        self.registration: Any = None

    def handle_event(self, event: Any) -> None:
        if self._closed:
            return
        try:
            with self._lock:
                self._value = apply_event(self._value, event.event_type, event.path, event.data)
                value = copy.deepcopy(self._value)
        except Exception as exc:  # noqa: BLE001 - reported through the error channel
            self._report(exc)
            return
        self._on_change(value)

    def _report(self, exc: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error("Firebase listener error.", extra={"reason": str(exc)})

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.registration is not None:
            self.registration.close()


class FirebaseRealtimeDatabase:
    """Streams a Realtime Database path through ``Reference.listen``."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    def listen(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> _FirebaseListener:
        listener = _FirebaseListener(on_change, on_error)
        try:
            reference = db.reference(path, app=self._app)
            listener.registration = reference.listen(listener.handle_event)
        except Exception as exc:  # noqa: BLE001 - transport failures surface as errors
            listener._report(exc)
            listener.close()
        return listener


def build_firebase_store(settings: Settings) -> Optional[FirebaseRealtimeDatabase]:
    if not settings.firebase_database_url:
        logger.warning("FIREBASE_DATABASE_URL is not set; realtime feed unavailable.")
        return None
    try:
        app = firebase_admin.get_app(_APP_NAME)
    except ValueError:
        try:
            credential = (
                credentials.Certificate(settings.firebase_credentials_path)
                if settings.firebase_credentials_path
                else credentials.ApplicationDefault()
            )
            app = firebase_admin.initialize_app(
                credential,
                {"databaseURL": settings.firebase_database_url},
                name=_APP_NAME,
            )
        except (OSError, ValueError) as exc:
            logger.error("Firebase initialization failed.", extra={"reason": str(exc)})
            return None
    return FirebaseRealtimeDatabase(app)
