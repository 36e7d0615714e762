from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_ingest,
    render_longevity,
    render_reliability,
    render_security,
    render_series,
    render_thresholds,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the sensor reliability service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


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
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds (defaults to CLI_TIMEOUT env or 30).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
) -> None:
    """Upload a CSV file of sensor readings."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    payload = state.client.upload_readings(file)
    if payload.get("status") == "failed":
        typer.secho("Upload rejected: no valid rows.", fg=typer.colors.RED)
    else:
        typer.secho(f"Upload accepted. readings={payload.get('accepted')}", fg=typer.colors.GREEN)
    typer.echo()
    render_ingest(payload)


@app.command("series")
def series_command(
    ctx: typer.Context,
    channel: str = typer.Argument(..., help="Channel id, e.g. temperature or pm2_5."),
    lookback_hours: int = typer.Option(24, "--lookback", "-l", help="1, 24, 168 or 720 hours."),
    weekly: bool = typer.Option(False, "--weekly/--daily", help="Collapse 720 h into weeks."),
) -> None:
    """Show the backfilled chart series for a channel."""
    state = _get_state(ctx)
    render_series(state.client.get_series(channel, lookback_hours, weekly))


@app.command("thresholds")
def thresholds_command(
    ctx: typer.Context,
    channel: str = typer.Argument(..., help="Channel id."),
    lookback_hours: int = typer.Option(24, "--lookback", "-l", help="1, 24, 168 or 720 hours."),
    sigma: Optional[float] = typer.Option(None, "--sigma", help="Critical sigma multiplier."),
) -> None:
    """Show dynamic thresholds for a channel's visible window."""
    state = _get_state(ctx)
    render_thresholds(state.client.get_thresholds(channel, lookback_hours, sigma))


@app.command("reliability")
def reliability_command(
    ctx: typer.Context,
    period_hours: float = typer.Option(24.0, "--period", "-p", help="Reporting period in hours."),
) -> None:
    """Show uptime, MTTR, MTBF, correlation and cost trend."""
    state = _get_state(ctx)
    render_reliability(state.client.get_reliability(period_hours))


@app.command("longevity")
def longevity_command(ctx: typer.Context) -> None:
    """Show the lifespan prediction and component health."""
    state = _get_state(ctx)
    render_longevity(state.client.get_longevity())


@app.command("security")
def security_command(ctx: typer.Context) -> None:
    """Show the current door security status."""
    state = _get_state(ctx)
    render_security(state.client.get_security_status())
