from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Optional

from pydantic import ValidationError

from app.schemas import CustomAlertSettings
from settings import get_settings

logger = logging.getLogger(__name__)

STORAGE_KEY = "customAlertThresholds"


class AlertSettingsStore:
    """JSON-backed holder of the user's custom alert overrides.

    Other top-level keys already present in the file are preserved on save.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self.persistence_path = persistence_path
        self._settings = CustomAlertSettings()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def load(self) -> CustomAlertSettings:
        with self._lock:
            return self._settings

    def save(self, settings: CustomAlertSettings) -> None:
        with self._lock:
            self._settings = settings
            self._persist()

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = self._read_payload()
        payload[STORAGE_KEY] = self._settings.model_dump(mode="json", exclude_none=True)
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _read_payload(self) -> dict:
        if not self.persistence_path or not self.persistence_path.exists():
            return {}
        try:
            data = json.loads(self.persistence_path.read_text() or "{}")
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _load_from_disk(self) -> None:
        stored = self._read_payload().get(STORAGE_KEY)
        if stored is None:
            return
        try:
            self._settings = CustomAlertSettings.model_validate(stored)
        except ValidationError as exc:
            logger.warning(
                "Ignoring invalid stored alert settings.", extra={"reason": str(exc)}
            )


@lru_cache
def build_default_settings_store(path: Optional[str] = None) -> AlertSettingsStore:
    settings = get_settings()
    store_path = settings.alert_settings_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return AlertSettingsStore(persistence_path=persistence)
