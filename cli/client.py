from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the monitor service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def get_current(self) -> Optional[Dict[str, Any]]:
        """Latest readings, or None while the service has no sensor data."""
        response = self._request("GET", "/readings/current", allow_unavailable=True)
        if response is None:
            return None
        return response.json()

    def get_alerts(self) -> Optional[List[Dict[str, Any]]]:
        response = self._request("GET", "/alerts", allow_unavailable=True)
        if response is None:
            return None
        return response.json()

    def get_alert_settings(self) -> Dict[str, Any]:
        return self._request("GET", "/alert-settings").json()

    def put_alert_settings(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", "/alert-settings", json=payload).json()

    def analyze(self, language: str) -> Dict[str, Any]:
        return self._request("POST", "/analysis", json={"language": language}).json()

    def _request(
        self,
        method: str,
        url: str,
        allow_unavailable: bool = False,
        **kwargs: Any,
    ) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            if allow_unavailable and response.status_code == 503:
                return None
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
