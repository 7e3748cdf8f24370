from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_STATUS_COLORS = {
    "good": typer.colors.GREEN,
    "moderate": typer.colors.YELLOW,
    "unhealthy": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Current Readings")
    typer.echo(f"timestamp: {payload.get('timestamp')}")
    overall = payload.get("overall_status")
    typer.secho(f"overall_status: {overall}", fg=_STATUS_COLORS.get(overall))
    if payload.get("stale"):
        typer.secho("Latest snapshot was invalid; showing previous data.", fg=typer.colors.YELLOW)

    typer.echo()
    for reading in (payload.get("readings") or {}).values():
        typer.echo(
            f"  - {reading.get('name')}: {reading.get('value')} {reading.get('unit')} "
            f"[{reading.get('status')}, {reading.get('percentage', 0):.0f}%]"
        )


def render_alerts(alerts: List[Dict[str, Any]]) -> None:
    echo_heading("Alerts")
    if not alerts:
        typer.echo("No custom thresholds exceeded.")
        return
    for alert in alerts:
        typer.secho(
            f"  - {alert.get('pollutant')}: {alert.get('current_value')}{alert.get('unit')} "
            f"above {alert.get('threshold')}{alert.get('unit')}",
            fg=typer.colors.RED,
        )


def render_settings(payload: Dict[str, Any]) -> None:
    echo_heading("Alert Settings")
    if not payload:
        typer.echo("No custom thresholds configured.")
        return
    for channel, override in payload.items():
        state = "enabled" if override.get("enabled") else "disabled"
        typer.echo(f"  - {channel}: {override.get('threshold')} {override.get('unit', '')} ({state})")


def render_analysis(payload: Dict[str, Any]) -> None:
    echo_heading("Analysis")
    echo_key_values(
        [
            ("overall_status", payload.get("overall_status")),
            ("source", payload.get("source")),
            ("summary", payload.get("summary")),
            ("health_impact", payload.get("health_impact")),
        ]
    )
    recommendations = payload.get("recommendations") or []
    if recommendations:
        typer.echo("recommendations:")
        for item in recommendations:
            typer.echo(f"  - {item}")
    risk_factors = payload.get("risk_factors") or []
    if risk_factors:
        typer.echo("risk_factors:")
        for item in risk_factors:
            typer.echo(f"  - {item}")
