"""Typer CLI entrypoints for shutterbus."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path
from typing import Optional

import typer

from shutterbus.config import ConfigError, initialize_config, load_settings
from shutterbus.export import (
    DEFAULT_OUTPUT_FILE,
    INVALID_WINDOW_MESSAGE,
    USAGE_LINES,
    export_events_to_csv,
    parse_window,
    window_start,
)
from shutterbus.kernel.runtime import Runtime
from shutterbus.kernel.types import MessageKind, QueryTimeoutError, WaitTimeoutError
from shutterbus.shutter import (
    SensorChanged,
    ShutterState,
    query_shutter_state,
    send_close,
    send_open,
)
from shutterbus.ui.render import render_notice, render_step

app = typer.Typer(
    no_args_is_help=True,
    help="In-process shutter event bus tooling.",
)


def _print_usage() -> None:
    for line in USAGE_LINES:
        typer.echo(line)


@app.command("export")
def export_command(
    log_path: Optional[str] = typer.Argument(None, help="Event log database path"),
    window: Optional[str] = typer.Argument(None, help="Trailing window, e.g. 24h, 7d, 30m"),
    output_file: str = typer.Argument(DEFAULT_OUTPUT_FILE, help="CSV output path"),
) -> None:
    """Export event log entries newer than WINDOW to CSV."""
    if not log_path or not window:
        _print_usage()
        return

    span = parse_window(window)
    if span is None:
        typer.echo(INVALID_WINDOW_MESSAGE)
        return

    source = Path(log_path)
    if not source.is_file():
        typer.echo(render_notice("error", "event log not found: {0}".format(source)), err=True)
        return

    try:
        count = export_events_to_csv(source, window_start(span), Path(output_file))
    except sqlite3.Error as exc:
        typer.echo(render_notice("error", "cannot read event log: {0}".format(exc)), err=True)
        return
    except OSError as exc:
        typer.echo(render_notice("error", "cannot write export file: {0}".format(exc)), err=True)
        return
    typer.echo("Exported {0} successfully! ({1} events)".format(output_file, count))


@app.command("init")
def init_command(
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
) -> None:
    """Write a default shutterbus.toml."""
    try:
        path = initialize_config(config, force=force)
    except ConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)
    typer.echo(render_notice("success", "config written: {0}".format(path)))


@app.command("demo")
def demo_command(
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
) -> None:
    """Run two shutters through open, close, query and dispose."""
    try:
        settings = load_settings(config)
    except ConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)
    run_demo(Runtime(settings))


def run_demo(runtime: Runtime, stream=None) -> None:
    out = stream or sys.stdout
    first, second = "001", "002"
    wait_sec = runtime.settings.confirm_timeout

    def show(source: str, text: str, level: str = "info") -> None:
        render_step(out, source, text, level=level)

    def on_sensor(event: SensorChanged) -> None:
        show("Sensor {0}".format(event.shutter_id), "sensor is {0}".format(event.actual_state.value))

    def await_sensor(shutter_id: str, state: ShutterState) -> None:
        pending = runtime.bus.wait_for(
            MessageKind.SENSOR_CHANGED,
            predicate=lambda event: event.actual_state is state,
            timeout=wait_sec,
            identity=shutter_id,
        )
        try:
            pending.result()
            show("MAIN", "shutter {0} confirmed {1}".format(shutter_id, state.value), "success")
        except WaitTimeoutError:
            show("MAIN", "shutter {0} did not confirm {1}".format(shutter_id, state.value), "error")

    with runtime:
        runtime.add_shutter(first)
        second_actor = runtime.add_shutter(second)
        runtime.add_listener()
        runtime.bus.subscribe_wildcard(MessageKind.SENSOR_CHANGED, "00*", on_sensor)

        show("MAIN", "sending open command to shutter {0}".format(first))
        send_open(runtime.bus, first)
        show("MAIN", "sending open command to shutter {0}".format(second))
        send_open(runtime.bus, second)
        await_sensor(second, ShutterState.OPEN)

        show("MAIN", "sending close command to shutters")
        send_close(runtime.bus, first)
        send_close(runtime.bus, second)
        await_sensor(second, ShutterState.CLOSED)

        try:
            snapshot = query_shutter_state(runtime.bus, first, timeout=runtime.settings.query_timeout)
            show("MAIN", "shutter {0} is {1}".format(snapshot.shutter_id, snapshot.state.value))
        except QueryTimeoutError as exc:
            show("MAIN", str(exc), "error")

        runtime.remove_shutter(first)
        show("MAIN", "disposed shutter {0}; opening shutter {1}".format(first, second))
        outcome = second_actor.open().result()
        show(
            "MAIN",
            "shutter {0} open confirmed={1} ({2}ms)".format(second, outcome.confirmed, outcome.elapsed_ms),
            "success" if outcome.confirmed else "error",
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
