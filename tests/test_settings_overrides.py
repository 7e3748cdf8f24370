from __future__ import annotations

from pathlib import Path
from typing import Iterable

from datastore.alert_settings import build_default_settings_store
from services.analysis import GeminiClient, build_default_analyzer
from services.feed import build_default_feed_client
from services.monitor import build_default_monitor
from services.sms import build_default_dispatcher
from settings import get_settings
from storage.realtime_db import MockRealtimeDatabase, build_default_store

_CACHES = (
    get_settings,
    build_default_store,
    build_default_feed_client,
    build_default_settings_store,
    build_default_analyzer,
    build_default_dispatcher,
    build_default_monitor,
)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    settings_path = tmp_path / "alerts.json"
    seed_path = tmp_path / "seed.json"
    seed_path.write_text('{"sensors": {"CO_ppm": 1}}')

    monkeypatch.setenv("FEED_BACKEND", "memory")
    monkeypatch.setenv("FEED_PATH", "/sensors")
    monkeypatch.setenv("FEED_SEED_PATH", str(seed_path))
    monkeypatch.setenv("ALERT_SETTINGS_PATH", str(settings_path))
    monkeypatch.setenv("ALERT_LANGUAGE", "FR")
    monkeypatch.setenv("ANALYZER_MODE", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    monkeypatch.setenv("ANALYZER_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15550000000")
    monkeypatch.setenv("CONTROL_UNIT_PHONE", "+15551112222")
    _clear_caches(_CACHES)

    try:
        store = build_default_store()
        feed = build_default_feed_client()
        analyzer = build_default_analyzer()
        dispatcher = build_default_dispatcher()
        monitor = build_default_monitor()

        assert isinstance(store, MockRealtimeDatabase)
        assert store.get("/sensors") == {"CO_ppm": 1}
        assert feed.path == "/sensors"
        assert build_default_settings_store().persistence_path == Path(settings_path)
        assert isinstance(analyzer.generator, GeminiClient)
        assert analyzer.max_attempts == 3
        assert dispatcher.configured
        assert dispatcher.default_recipient == "+15551112222"
        assert monitor.language == "fr"
    finally:
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("FEED_BACKEND", "carrier-pigeon")
    monkeypatch.setenv("ANALYZER_MODE", "oracle")
    monkeypatch.setenv("ANALYZER_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("FEED_PATH", "   ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.feed_backend == "memory"
        assert settings.analyzer_mode == "mock"
        assert settings.analyzer_max_attempts == 6
        assert settings.feed_path == "/"
        assert settings.log_level == "DEBUG"
    finally:
        get_settings.cache_clear()


def test_gemini_mode_without_key_uses_fallback(monkeypatch) -> None:
    monkeypatch.setenv("ANALYZER_MODE", "gemini")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    _clear_caches((get_settings, build_default_analyzer))

    try:
        assert build_default_analyzer().mode == "mock"
    finally:
        _clear_caches((get_settings, build_default_analyzer))


def test_firebase_backend_without_url_has_no_store(monkeypatch) -> None:
    monkeypatch.setenv("FEED_BACKEND", "firebase")
    monkeypatch.delenv("FIREBASE_DATABASE_URL", raising=False)
    _clear_caches((get_settings, build_default_store))

    try:
        assert build_default_store() is None
    finally:
        _clear_caches((get_settings, build_default_store))
