from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_chart, render_stations, render_weather


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the relay weather service.",
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
        help="Seconds to wait for each request to the service.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("stations")
def stations_command(ctx: typer.Context) -> None:
    """List stations that publish metadata on the relay."""
    state = _get_state(ctx)
    render_stations(state.client.list_stations())


@app.command("show")
def show_command(
    ctx: typer.Context,
    pubkey: str = typer.Argument(..., help="Station public key."),
) -> None:
    """Show current conditions, flagged values and detected sensors."""
    state = _get_state(ctx)
    render_weather(state.client.get_weather(pubkey))


@app.command("chart")
def chart_command(
    ctx: typer.Context,
    pubkey: str = typer.Argument(..., help="Station public key."),
    grid: str = typer.Option(
        "last-hour",
        "--grid",
        "-g",
        help="Display grid: last-hour (60 x 1 min) or last-24-hours (24 x 1 h).",
    ),
    channel: Optional[List[str]] = typer.Option(
        None,
        "--channel",
        "-c",
        help="Only include this channel; repeat for more.",
    ),
) -> None:
    """Print a bucketed chart grid; gaps are shown as '-'."""
    state = _get_state(ctx)
    render_chart(state.client.get_chart(pubkey, grid, channels=channel))


@app.command("refresh")
def refresh_command(
    ctx: typer.Context,
    pubkey: str = typer.Argument(..., help="Station public key."),
    force: bool = typer.Option(
        False,
        "--force/--no-force",
        help="Supersede a fetch cycle that is already running.",
    ),
) -> None:
    """Trigger a fetch cycle now and show the result."""
    state = _get_state(ctx)
    payload = state.client.refresh(pubkey, force=force)
    typer.secho(f"Refreshed {pubkey}: status={payload.get('status')}", fg=typer.colors.GREEN)
    render_weather(payload)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    pubkey: str = typer.Argument(..., help="Station public key."),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Seconds between updates (defaults to CLI_WATCH_INTERVAL or 30).",
    ),
    count: int = typer.Option(
        0,
        "--count",
        min=0,
        help="Stop after this many updates; 0 keeps going until interrupted.",
    ),
) -> None:
    """Re-display the station every interval."""
    state = _get_state(ctx)
    delay = interval if interval is not None else state.config.watch_interval
    shown = 0
    while True:
        render_weather(state.client.get_weather(pubkey))
        shown += 1
        if count and shown >= count:
            return
        typer.echo()
        time.sleep(delay)
