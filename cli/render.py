from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Any, digits: int = 2) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float):
        return f"{value:.{digits}f}"
    return str(value)


def render_ingest(payload: Dict[str, Any]) -> None:
    echo_heading("Upload Result")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("accepted", payload.get("accepted")),
            ("synced_at", payload.get("synced_at")),
        ]
    )
    errors = payload.get("errors") or []
    typer.echo()
    echo_heading("Errors")
    if errors:
        for error in errors:
            typer.echo(f"  - row {error.get('row_number')}: {error.get('reason')}")
    else:
        typer.echo("No errors recorded.")


def render_series(payload: Dict[str, Any]) -> None:
    echo_heading(f"Series: {payload.get('channel')} ({payload.get('unit')})")
    echo_key_values(
        [
            ("lookback_hours", payload.get("lookback_hours")),
            ("resolution", payload.get("resolution")),
            ("source", payload.get("source")),
        ]
    )
    typer.echo()
    for point in payload.get("points") or []:
        value = _fmt(point.get("value")) if point.get("has_data") else "no data"
        typer.echo(f"  {point.get('label')}: {value}")


def render_thresholds(payload: Dict[str, Any]) -> None:
    echo_heading(f"Thresholds: {payload.get('channel')}")
    optimal = payload.get("optimal_range") or {}
    statistics = payload.get("statistics") or {}
    echo_key_values(
        [
            ("applicable", payload.get("applicable")),
            ("sigma", payload.get("sigma")),
            ("samples", statistics.get("count")),
            ("mean", _fmt(statistics.get("mean"))),
            ("optimal", f"{_fmt(optimal.get('min'))} .. {_fmt(optimal.get('max'))}"),
            ("warning_low", _fmt(payload.get("warning_low"))),
            ("warning_high", _fmt(payload.get("warning_high"))),
            ("critical_low", _fmt(payload.get("critical_low"))),
            ("critical_high", _fmt(payload.get("critical_high"))),
            ("anomalies", payload.get("anomaly_count")),
        ]
    )
    trend = payload.get("trend")
    if trend:
        typer.echo()
        echo_heading("Trend")
        echo_key_values(
            [
                ("direction", trend.get("direction")),
                ("change_percent", _fmt(trend.get("percentage"))),
                ("prediction", trend.get("prediction")),
                ("recommendation", trend.get("recommendation")),
            ]
        )


def render_reliability(payload: Dict[str, Any]) -> None:
    echo_heading("Reliability")
    uptime = payload.get("uptime") or {}
    cost = payload.get("cost") or {}
    echo_key_values(
        [
            ("period_hours", payload.get("period_hours")),
            ("uptime_percent", _fmt(uptime.get("uptime_percent"))),
            ("downtime_hours", _fmt(uptime.get("downtime_hours"))),
            ("incidents", uptime.get("incidents")),
            ("mttr_hours", _fmt(payload.get("mttr_hours"))),
            ("mtbf_hours", _fmt(payload.get("mtbf_hours"))),
            ("cost_current", _fmt(cost.get("current"))),
            ("cost_change_percent", _fmt(cost.get("change_percent"))),
        ]
    )
    correlations = payload.get("correlations") or []
    typer.echo()
    echo_heading("Failure Correlation")
    if correlations:
        for item in correlations:
            typer.echo(f"  - {item.get('channel')}: r={_fmt(item.get('coefficient'), 3)}")
    else:
        typer.echo("Not enough data.")


def render_longevity(payload: Dict[str, Any]) -> None:
    echo_heading("Longevity")
    echo_key_values(
        [
            ("expected_lifespan_years", payload.get("expected_lifespan_years")),
            ("current_age_years", _fmt(payload.get("current_age_years"))),
            ("degradation_rate", payload.get("degradation_rate")),
            ("maintenance_efficiency", _fmt(payload.get("maintenance_efficiency"), 1)),
            ("cost_efficiency", _fmt(payload.get("cost_efficiency"), 1)),
            ("predicted_remaining_life", payload.get("predicted_remaining_life")),
        ]
    )
    typer.echo()
    echo_heading("Components")
    for component in payload.get("components") or []:
        typer.echo(f"  - {component.get('component')}: {component.get('health')}%")


def render_security(payload: Dict[str, Any]) -> None:
    echo_heading("Door Security")
    state = payload.get("state")
    color = typer.colors.GREEN
    if payload.get("is_red_alert"):
        color = typer.colors.RED
    elif payload.get("is_amber_warning"):
        color = typer.colors.YELLOW
    typer.secho(f"state: {state}", fg=color)
    echo_key_values(
        [
            ("door", payload.get("door_status")),
            ("elapsed_seconds", payload.get("elapsed_seconds")),
            ("opened_at", payload.get("opened_at")),
            ("entries_today", payload.get("entries_today")),
        ]
    )
