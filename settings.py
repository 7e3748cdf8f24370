from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_FEED_BACKEND_ENV = "FEED_BACKEND"
_FEED_PATH_ENV = "FEED_PATH"
_FEED_SEED_ENV = "FEED_SEED_PATH"
_FIREBASE_URL_ENV = "FIREBASE_DATABASE_URL"
_FIREBASE_CREDENTIALS_ENV = "FIREBASE_CREDENTIALS_PATH"
_ALERT_SETTINGS_PATH_ENV = "ALERT_SETTINGS_PATH"
_ALERT_LANGUAGE_ENV = "ALERT_LANGUAGE"
_ANALYZER_MODE_ENV = "ANALYZER_MODE"
_GEMINI_KEY_ENV = "GEMINI_API_KEY"
_GEMINI_MODEL_ENV = "GEMINI_MODEL"
_ANALYZER_ATTEMPTS_ENV = "ANALYZER_MAX_ATTEMPTS"
_TWILIO_SID_ENV = "TWILIO_ACCOUNT_SID"
_TWILIO_TOKEN_ENV = "TWILIO_AUTH_TOKEN"
_TWILIO_FROM_ENV = "TWILIO_FROM_NUMBER"
_CONTROL_PHONE_ENV = "CONTROL_UNIT_PHONE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

FEED_BACKENDS = ("memory", "firebase")
ANALYZER_MODES = ("mock", "gemini")


@dataclass(frozen=True)
class Settings:
    feed_backend: str
    feed_path: str
    feed_seed_path: Optional[str]
    firebase_database_url: Optional[str]
    firebase_credentials_path: Optional[str]
    alert_settings_path: Optional[str]
    alert_language: str
    analyzer_mode: str
    gemini_api_key: Optional[str]
    gemini_model: str
    analyzer_max_attempts: int
    twilio_account_sid: Optional[str]
    twilio_auth_token: Optional[str]
    twilio_from_number: Optional[str]
    control_unit_phone: Optional[str]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_choice_env(name: str, choices: tuple[str, ...], default: str) -> str:
    candidate = _read_str_env(name, default).lower()
    return candidate if candidate in choices else default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        feed_backend=_read_choice_env(_FEED_BACKEND_ENV, FEED_BACKENDS, "memory"),
        feed_path=_read_str_env(_FEED_PATH_ENV, "/"),
        feed_seed_path=_read_optional_env(_FEED_SEED_ENV),
        firebase_database_url=_read_optional_env(_FIREBASE_URL_ENV),
        firebase_credentials_path=_read_optional_env(_FIREBASE_CREDENTIALS_ENV),
        alert_settings_path=_read_optional_env(
            _ALERT_SETTINGS_PATH_ENV, "./tmp/alert_settings.json"
        ),
        alert_language=_read_str_env(_ALERT_LANGUAGE_ENV, "en").lower(),
        analyzer_mode=_read_choice_env(_ANALYZER_MODE_ENV, ANALYZER_MODES, "mock"),
        gemini_api_key=_read_optional_env(_GEMINI_KEY_ENV),
        gemini_model=_read_str_env(_GEMINI_MODEL_ENV, "gemini-1.5-flash"),
        analyzer_max_attempts=_read_positive_int(_ANALYZER_ATTEMPTS_ENV, 6),
        twilio_account_sid=_read_optional_env(_TWILIO_SID_ENV),
        twilio_auth_token=_read_optional_env(_TWILIO_TOKEN_ENV),
        twilio_from_number=_read_optional_env(_TWILIO_FROM_ENV),
        control_unit_phone=_read_optional_env(_CONTROL_PHONE_ENV),
        log_level=_read_log_level("INFO"),
    )
