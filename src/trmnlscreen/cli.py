"""TRMNL screen fetcher CLI application.

This module provides the command-line interface standing in for the
device menu: running the refresh service, fetching once, toggling
auto-refresh and the other preferences, and configuration utilities.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Final

import typer
import yaml
from pydantic import ValidationError

from trmnlscreen.controller import TrmnlDisplay, configure_logging, serve
from trmnlscreen.scheduling import ManualTaskScheduler, TaskScheduler
from trmnlscreen.settings import AppPaths, PersistedState, RefreshType, SettingsStore, UserSettings
from trmnlscreen.system import SystemdInhibitStandby

# ── CLI setup ────────────────────────────────────────────────────────────────
app = typer.Typer(help="TRMNL e-ink screen fetcher", add_completion=False)
config_app = typer.Typer(help="Config helpers")
app.add_typer(config_app, name="config")

logger: Final = logging.getLogger(__name__)


class Switch(str, Enum):
    ON = "on"
    OFF = "off"


# Options shared by the commands
STATE_OPTION = typer.Option(
    None, "--state", "-s", dir_okay=False, help="State file (default: $TRMNL_SCREEN_STATE)"
)
DEBUG_OPTION = typer.Option(False, "--debug", help="Enable debug logging")
SWITCH_ARGUMENT = typer.Argument(..., help="on or off")
REFRESH_TYPE_ARGUMENT = typer.Argument(..., help="E-ink refresh mode")
INHIBIT_OPTION = typer.Option(
    False, "--inhibit-sleep", help="Hold a systemd-inhibit lock while auto-refresh is on"
)
PURGE_OPTION = typer.Option(False, "--purge", help="Delete the cached image on exit")
FILE_ARGUMENT = typer.Argument(None, dir_okay=False, help="State file to check")


@dataclass
class CliState:
    """Objects shared by every command through the typer context."""

    store: SettingsStore
    paths: AppPaths


@app.callback()
def main(
    ctx: typer.Context,
    state: Path | None = STATE_OPTION,
    debug: bool = DEBUG_OPTION,
) -> None:
    """Fetch TRMNL screens and show them on an e-ink display."""
    configure_logging(debug)
    store = SettingsStore.resolve(state, default=AppPaths.default().state_file)
    ctx.obj = CliState(store=store, paths=AppPaths.for_state_file(store.path))


def _fail(message: str) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


def _build_display(ctx: typer.Context, tasks: TaskScheduler, **kwargs: Any) -> TrmnlDisplay:
    cli: CliState = ctx.obj
    try:
        return TrmnlDisplay(cli.store, tasks, paths=cli.paths, **kwargs)
    except RuntimeError as exc:
        raise _fail(str(exc)) from exc


def _load_state(ctx: typer.Context) -> PersistedState:
    cli: CliState = ctx.obj
    try:
        return cli.store.load()
    except RuntimeError as exc:
        raise _fail(str(exc)) from exc


# ───────────────────────── service commands ──────────────────────────────────
@app.command()
def run(
    ctx: typer.Context,
    inhibit_sleep: bool = INHIBIT_OPTION,
    purge: bool = PURGE_OPTION,
) -> None:
    """Run the refresh service until SIGTERM or Ctrl+C.

    SIGUSR1 suspends, SIGUSR2 resumes and SIGHUP reloads the state file.
    """
    standby = SystemdInhibitStandby() if inhibit_sleep else None

    def build(tasks: TaskScheduler) -> TrmnlDisplay:
        return _build_display(ctx, tasks, standby=standby)

    asyncio.run(serve(build, purge_cache=purge))


@app.command()
def fetch(ctx: typer.Context) -> None:
    """Fetch and display the current screen once."""
    tasks = ManualTaskScheduler()
    display = _build_display(ctx, tasks)

    display.fetch_now()
    tasks.advance(display.cycle.stabilize_delay)
    display.flush_settings()

    result = display.cycle.last_result
    if result is None or not result.ok:
        raise typer.Exit(code=1)
    typer.echo(f"Screen saved to {result.image_path}")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the persisted scheduling state and cache."""
    display = _build_display(ctx, ManualTaskScheduler())
    report = dict(display.status())
    report["auto_refresh"] = "on" if display.state.auto_refresh_enabled else "off"
    for key, value in report.items():
        typer.echo(f"{key:<24} {value}")


# ───────────────────────── menu toggles ──────────────────────────────────────
@app.command("auto-refresh")
def auto_refresh(ctx: typer.Context, switch: Switch = SWITCH_ARGUMENT) -> None:
    """Turn auto-refresh on or off (a running service picks it up on SIGHUP)."""
    cli: CliState = ctx.obj
    state = _load_state(ctx)
    state.auto_refresh_enabled = switch is Switch.ON
    cli.store.flush(state)
    typer.echo("Auto-refresh enabled." if state.auto_refresh_enabled else "Auto-refresh disabled.")


@app.command("server-interval")
def server_interval(ctx: typer.Context, switch: Switch = SWITCH_ARGUMENT) -> None:
    """Use the server's recommended refresh interval, or your own."""
    display = _build_display(ctx, ManualTaskScheduler())
    if display.settings.use_server_refresh_rate != (switch is Switch.ON):
        display.toggle_server_refresh_rate()
    if display.settings.use_server_refresh_rate:
        typer.echo("Will use server's recommended refresh interval")
    else:
        typer.echo(
            f"Will use your manual refresh interval ({display.settings.refresh_interval}s)"
        )


@app.command()
def notifications(ctx: typer.Context, switch: Switch = SWITCH_ARGUMENT) -> None:
    """Show or hide status notifications (errors are always shown)."""
    display = _build_display(ctx, ManualTaskScheduler())
    message = (
        "Status notifications enabled (errors always shown)"
        if display.settings.show_notifications
        else "Status notifications hidden (errors still shown)"
    )
    if display.settings.show_notifications != (switch is Switch.ON):
        message = display.toggle_notifications()
    typer.echo(message)


@app.command("refresh-type")
def refresh_type(ctx: typer.Context, value: RefreshType = REFRESH_TYPE_ARGUMENT) -> None:
    """Choose the e-ink refresh mode."""
    display = _build_display(ctx, ManualTaskScheduler())
    chosen = display.set_refresh_type(value)
    typer.echo(f"Refresh type set to {chosen.value}")


# ───────────────────────── config sub-commands ───────────────────────────────
@config_app.command("show")
def show_config(ctx: typer.Context) -> None:
    """Print the persisted state with the API key masked."""
    state = _load_state(ctx)
    data = state.model_dump(mode="json")
    api_key = data["settings"].get("api_key")
    if api_key:
        data["settings"]["api_key"] = api_key[:4] + "…" if len(api_key) > 4 else "…"
    typer.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), nl=False)


@config_app.command("validate")
def validate_config(ctx: typer.Context, file: Path | None = FILE_ARGUMENT) -> None:
    """Validate a state file against the schema."""
    cli: CliState = ctx.obj
    store = SettingsStore(file) if file else cli.store
    if not store.path.exists():
        raise _fail(f"State file not found: {store.path}")
    try:
        store.load()
        typer.echo("✅ Config valid")
    except RuntimeError as exc:
        raise _fail(str(exc)) from exc


@config_app.command("wizard")
def wizard(ctx: typer.Context) -> None:
    """Interactive prompt to configure the TRMNL connection."""
    cli: CliState = ctx.obj
    state = _load_state(ctx)
    current = state.settings
    typer.echo("Interactive config builder - press Enter to keep current values.")

    while True:
        data: dict[str, Any] = {
            **current.model_dump(),
            "api_key": typer.prompt(
                "TRMNL API key", default=current.api_key or "", hide_input=True
            ),
            "base_url": typer.prompt("Server base URL", default=current.base_url),
            "refresh_interval": typer.prompt(
                "Refresh interval (seconds)", default=current.refresh_interval, type=int
            ),
            "mac_header_name": typer.prompt(
                "Device ID header name", default=current.device_id_header
            ),
            "mac_address": typer.prompt(
                "Device ID override (blank = auto-detect)",
                default=current.mac_address or "",
                show_default=False,
            ),
        }
        try:
            state.settings = UserSettings(**data)
            break  # valid → exit loop
        except ValidationError as err:
            typer.secho("\nConfig error(s):", fg=typer.colors.RED, err=True)
            for e in err.errors():
                typer.secho(f"  • {e['loc'][0]} - {e['msg']}", fg=typer.colors.RED, err=True)
            typer.echo("Please re-enter the values.\n")

    cli.store.flush(state)
    typer.secho(f"Config written to {cli.store.path}", fg=typer.colors.GREEN)


# ───────────────────────── module entrypoint ────────────────────────────────
if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(0)
