from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_alerts, render_analysis, render_readings, render_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the air quality monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
settings_app = typer.Typer(help="Show or change custom alert thresholds.")
app.add_typer(settings_app, name="settings")

NO_DATA_MESSAGE = "No sensor data available yet."


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
    language: Optional[str] = typer.Option(
        None,
        "--language",
        "-l",
        help="Language tag for generated text (defaults to CLI_LANGUAGE env or en).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        request_timeout=timeout,
        language=language,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("current")
def current_command(ctx: typer.Context) -> None:
    """Show the latest readings and their classification."""
    state = _get_state(ctx)
    payload = state.client.get_current()
    if payload is None:
        typer.secho(NO_DATA_MESSAGE, fg=typer.colors.YELLOW)
        raise typer.Exit(code=2)
    render_readings(payload)


@app.command("alerts")
def alerts_command(ctx: typer.Context) -> None:
    """Show custom alerts raised by the latest readings."""
    state = _get_state(ctx)
    alerts = state.client.get_alerts()
    if alerts is None:
        typer.secho(NO_DATA_MESSAGE, fg=typer.colors.YELLOW)
        raise typer.Exit(code=2)
    render_alerts(alerts)


@app.command("analyze")
def analyze_command(ctx: typer.Context) -> None:
    """Request a health assessment of the latest readings."""
    state = _get_state(ctx)
    render_analysis(state.client.analyze(state.config.language))


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Seconds between refreshes (defaults to CLI_POLL_INTERVAL env or 2).",
    ),
    count: int = typer.Option(
        0,
        "--count",
        "-n",
        min=0,
        help="Stop after this many refreshes; 0 watches until interrupted.",
    ),
) -> None:
    """Poll the latest readings and alerts."""
    state = _get_state(ctx)
    delay = interval if interval is not None else state.config.poll_interval
    refreshes = 0
    while True:
        payload = state.client.get_current()
        if payload is None:
            typer.secho(NO_DATA_MESSAGE, fg=typer.colors.YELLOW)
        else:
            render_readings(payload)
            typer.echo()
            render_alerts(state.client.get_alerts() or [])
        refreshes += 1
        if count and refreshes >= count:
            return
        typer.echo()
        time.sleep(delay)


@settings_app.command("show")
def settings_show_command(ctx: typer.Context) -> None:
    """Show the stored custom alert thresholds."""
    state = _get_state(ctx)
    render_settings(state.client.get_alert_settings())


@settings_app.command("set")
def settings_set_command(
    ctx: typer.Context,
    co: Optional[float] = typer.Option(None, "--co", min=0, help="CO threshold in ppm."),
    co_enabled: bool = typer.Option(True, "--co-enabled/--co-disabled"),
    pm2_5: Optional[float] = typer.Option(None, "--pm25", min=0, help="PM2.5 threshold in µg/m³."),
    pm2_5_enabled: bool = typer.Option(True, "--pm25-enabled/--pm25-disabled"),
) -> None:
    """Replace the custom alert thresholds; omitted channels are cleared."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {}
    if co is not None:
        payload["co"] = {"threshold": co, "enabled": co_enabled, "unit": "ppm"}
    if pm2_5 is not None:
        payload["pm2_5"] = {"threshold": pm2_5, "enabled": pm2_5_enabled, "unit": "µg/m³"}
    saved = state.client.put_alert_settings(payload)
    typer.secho("Alert settings saved.", fg=typer.colors.GREEN)
    render_settings(saved)
