from __future__ import annotations

import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol

from settings import get_settings

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]


class ListenerHandle(Protocol):
    def close(self) -> None: ...


class RealtimeStore(Protocol):
    """Push-subscription key-value store read at a fixed path."""

    def listen(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> ListenerHandle: ...


def split_path(path: str) -> List[str]:
    return [part for part in path.strip().split("/") if part]


def _is_related(listen_parts: List[str], write_parts: List[str]) -> bool:
    shortest = min(len(listen_parts), len(write_parts))
    return listen_parts[:shortest] == write_parts[:shortest]


class _Listener:

    def __init__(
        self,
        store: "MockRealtimeDatabase",
        parts: List[str],
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback],
    ) -> None:
        self.parts = parts
        self.on_change = on_change
        self.on_error = on_error
        self._store = store
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._detach(self)


class MockRealtimeDatabase:
    """In-process stand-in for a realtime database.

    Listeners receive the value at their path once on registration and again
    after every write that touches it. Delivery happens synchronously on the
    writer's thread, outside the store lock, with a deep copy of the value.
    """

    def __init__(self, name: str, seed_path: Optional[Path] = None) -> None:
        self.name = name
        self.seed_path = seed_path
        self._root: Any = None
        self._listeners: List[_Listener] = []
        self._lock = Lock()
        if seed_path:
            self._load_seed()

    def get(self, path: str = "/") -> Any:
        with self._lock:
            return copy.deepcopy(self._read(split_path(path)))

    def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        with self._lock:
            self._write(parts, copy.deepcopy(value))
        self._notify(parts)

    def update(self, path: str, children: Dict[str, Any]) -> None:
        parts = split_path(path)
        with self._lock:
            for key, value in children.items():
                self._write(parts + split_path(str(key)), copy.deepcopy(value))
        self._notify(parts)

    def listen(
        self,
        path: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> _Listener:
        listener = _Listener(self, split_path(path), on_change, on_error)
        with self._lock:
            self._listeners.append(listener)
            initial = copy.deepcopy(self._read(listener.parts))
        on_change(initial)
        return listener

    def fail(self, error: BaseException) -> None:
        """Report a transport error to every active listener."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            if not listener.closed and listener.on_error is not None:
                listener.on_error(error)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _detach(self, listener: _Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, write_parts: List[str]) -> None:
        with self._lock:
            deliveries = [
                (listener, copy.deepcopy(self._read(listener.parts)))
                for listener in self._listeners
                if _is_related(listener.parts, write_parts)
            ]
        for listener, value in deliveries:
            if not listener.closed:
                listener.on_change(value)

    def _read(self, parts: List[str]) -> Any:
        node = self._root
        for part in parts:
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return node

    def _write(self, parts: List[str], value: Any) -> None:
        if not parts:
            self._root = value
            return
        if not isinstance(self._root, dict):
            self._root = {}
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

    def _load_seed(self) -> None:
        assert self.seed_path is not None
        if not self.seed_path.exists():
            logger.warning("Feed seed file does not exist.", extra={"feed_path": str(self.seed_path)})
            return
        try:
            self._root = json.loads(self.seed_path.read_text() or "null")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Could not load feed seed file.",
                extra={"feed_path": str(self.seed_path), "reason": str(exc)},
            )
            self._root = None


@lru_cache
def build_default_store() -> Optional[RealtimeStore]:
    """Store selected by ``FEED_BACKEND``; None when the backend is not configured."""
    settings = get_settings()
    if settings.feed_backend == "firebase":
        from storage.firebase_db import build_firebase_store

        return build_firebase_store(settings)
    seed = Path(settings.feed_seed_path) if settings.feed_seed_path else None
    return MockRealtimeDatabase(name="sensor-feed", seed_path=seed)
