#!/usr/bin/env python3
"""
rpbridge CLI - report recorded test runs

Usage:
    rpbridge replay <events.jsonl> --config <rpbridge.yaml> [OPTIONS]
    rpbridge validate <rpbridge.yaml>
    rpbridge info
    rpbridge --version
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .bridge import AsyncDispatcher, LifecycleBridge
from .client import create_client
from .config import ReporterConfig, dry_run_config, load_config
from .runner import EventEmitter, EventReplayer, ReplayError, load_event_log

app = typer.Typer(
    name="rpbridge",
    help="📡 rpbridge - Report test runner events to ReportPortal",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"📡 rpbridge v{__version__}")
        raise typer.Exit()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
    log_level: str = typer.Option(
        "warning", "--log-level", "-l",
        help="Log level: debug, info, warning or error"
    ),
):
    """
    📡 rpbridge - Report test runner events to ReportPortal

    Replays recorded runner events as launches, suites and tests.
    """
    setup_logging(log_level)


def _load(config_file: Optional[Path], dry_run: bool, launch_name: str) -> ReporterConfig:
    if config_file is None:
        if not dry_run:
            console.print("[red]❌ Either --config or --dry-run is required[/red]")
            raise typer.Exit(code=1)
        return dry_run_config(launch_name)

    config, validation = load_config(config_file)
    if config is None:
        console.print(f"\n[red]❌ Invalid configuration:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)
    if dry_run:
        config.reporter.dry_run = True
    return config


@app.command()
def replay(
    events_file: Path = typer.Argument(
        ...,
        help="Path to the JSON-lines event log",
        exists=True,
        readable=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to the rpbridge YAML configuration",
        exists=True,
        readable=True,
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Report into memory only, without contacting the server"
    ),
    output: str = typer.Option(
        "text", "--output", "-o",
        help="Output format: text or json"
    ),
    report_file: Optional[Path] = typer.Option(
        None, "--report", "-r",
        help="Also save the run summary as JSON to this file"
    ),
):
    """
    Replay a recorded event log into a new launch.

    The log is parsed in full before anything is sent. Exits with 1 on
    invalid input or when any reporting call failed.
    """
    config = _load(config_file, dry_run, events_file.stem)

    try:
        records = load_event_log(events_file)
    except ReplayError as e:
        console.print(f"[red]❌ Cannot replay {events_file}:[/red] {e}")
        raise typer.Exit(code=1)

    target = "memory (dry run)" if config.dry_run else config.server.endpoint
    if output != "json":
        console.print(f"\n📄 Replaying {len(records)} event(s) from {events_file} to {target}")

    emitter = EventEmitter()
    bridge = LifecycleBridge(AsyncDispatcher(create_client(config)), config)
    bridge.attach(emitter)

    replay_error = None
    try:
        EventReplayer(emitter).replay(records)
    except ReplayError as e:
        replay_error = e
    finally:
        summary = bridge.finalize()

    if output == "json":
        console.print_json(summary.to_json())
    else:
        console.print("\n" + summary.summary())

    if report_file is not None:
        report_file.parent.mkdir(parents=True, exist_ok=True)
        report_file.write_text(summary.to_json())
        if output != "json":
            console.print(f"\n📁 Summary saved: {report_file}")

    if replay_error is not None:
        console.print(f"[red]❌ Replay stopped:[/red] {replay_error}")
        raise typer.Exit(code=1)
    raise typer.Exit(code=0 if summary.succeeded else 1)


@app.command()
def validate(
    config_file: Path = typer.Argument(
        ...,
        help="Path to the rpbridge YAML configuration",
        exists=True,
        readable=True,
    ),
):
    """
    Validate a configuration file without contacting the server.
    """
    console.print(f"\n📄 Validating: {config_file}")

    config, validation = load_config(config_file)

    if config is None:
        console.print(f"\n[red]❌ Validation failed:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)

    console.print(f"\n[green]✅ Valid configuration:[/green] {config.launch.name}")

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    if config.server is not None:
        table.add_row("endpoint", config.server.endpoint)
        table.add_row("project", config.server.project)
        table.add_row("token", "set" if config.server.token else "not set")
        table.add_row("timeout_ms", str(config.server.timeout_ms))
    table.add_row("launch mode", config.launch.mode.value)
    for attribute in config.launch.attributes:
        label = f"{attribute.key}:{attribute.value}" if attribute.key else attribute.value
        table.add_row("attribute", label)
    table.add_row("dry run", "yes" if config.dry_run else "no")
    if config.reporter.screenshot_dir is not None:
        table.add_row("screenshot_dir", str(config.reporter.screenshot_dir))

    console.print()
    console.print(table)
    raise typer.Exit(code=0)


@app.command()
def info():
    """
    Show information about rpbridge.
    """
    console.print(f"""
📡 [bold]rpbridge[/bold] v{__version__}

Test runner to ReportPortal bridge

[bold]Features:[/bold]
  • Nested suites and tests reported in event order
  • Fire-and-forget calls, ordered by their parents
  • pytest plugin (--rp) and JSON-lines event replay
  • Failure logs with screenshot attachments

[bold]Quick Start:[/bold]
  rpbridge validate rpbridge.yaml
  rpbridge replay run.jsonl --config rpbridge.yaml
  pytest --rp --rp-config rpbridge.yaml
""")


if __name__ == "__main__":
    app()
