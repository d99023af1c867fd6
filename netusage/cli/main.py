"""
CLI interface for netusage.

Provides command-line access to monitoring, queries, export and settings.
"""

import sys
import threading
from datetime import datetime
from typing import Optional, Tuple

import typer
import yaml
from rich.console import Console
from rich.table import Table

from netusage.config.loader import VALID_LOG_LEVELS, AppConfig, load_config
from netusage.config.log_setup import configure_logging
from netusage.core.exporter import export as export_rows, write_csv
from netusage.core.formatting import format_size, format_speed
from netusage.core.monitor import Monitor
from netusage.core.planner import (
    DAY_MS,
    PlanMode,
    TimeWindow,
    date_range_bounds,
    execute_plan,
    is_live_window,
    parse_date,
    parse_window,
    to_rates,
    window_bounds
)
from netusage.core.retention import RetentionPolicy
from netusage.core.sampler import now_millis
from netusage.errors import ExportFailed, StorageUnavailable
from netusage.storage.models import UsageSample

app = typer.Typer()
settings_app = typer.Typer(help="Read and write persisted settings.")
app.add_typer(settings_app, name="settings")
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

FROM_HELP = "First day of a date range, YYYY-MM-DD (overrides --window)"
TO_HELP = "Last day of a date range, YYYY-MM-DD (inclusive)"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db",
        help="Path to the usage database (overrides config and NETUSAGE_DB)"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
):
    """netusage - network usage monitor."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if db_path:
        config = config.with_db_path(db_path)
    if log_level is not None and log_level.upper() not in VALID_LOG_LEVELS:
        expected = ", ".join(sorted(VALID_LOG_LEVELS))
        console.print(f"[red]Invalid log level:[/] {log_level} (expected one of: {expected})")
        sys.exit(EXIT_CODE_FAIL)
    configure_logging(log_level or config.logging.level)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print("netusage - Use --help to see available commands")


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else AppConfig()


def _open_monitor(ctx: typer.Context) -> Monitor:
    """Create a monitor and open its store, exiting on storage failure."""
    monitor = Monitor(_config(ctx))
    try:
        monitor.store
    except StorageUnavailable as e:
        console.print(f"[red]Storage unavailable:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    return monitor


def _window_or_exit(label: str):
    try:
        return parse_window(label)
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)


def _range_or_exit(
    window: Optional[str],
    date_from: Optional[str],
    date_to: Optional[str]
) -> Tuple[int, int, Optional[TimeWindow], str]:
    """Resolve --window or --from/--to into (start, end, preset, label).

    A date range overrides the window; preset is None for date ranges.
    """
    if date_from is None and date_to is None:
        if window is None:
            console.print("[red]Error:[/] give --window or --from and --to")
            sys.exit(EXIT_CODE_FAIL)
        time_window = _window_or_exit(window)
        start, end = window_bounds(time_window, now_millis())
        return start, end, time_window, f"last {window}"

    if date_from is None or date_to is None:
        console.print("[red]Error:[/] --from and --to must be given together")
        sys.exit(EXIT_CODE_FAIL)
    try:
        first = parse_date(date_from)
        last = parse_date(date_to)
        start, end = date_range_bounds(first, last)
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    return start, end, None, f"{first} to {last}"


def _format_time(timestamp: int, with_date: bool = False) -> str:
    fmt = "%Y-%m-%d %H:%M:%S" if with_date else "%H:%M:%S"
    return datetime.fromtimestamp(timestamp / 1000).strftime(fmt)


@app.command()
def init(ctx: typer.Context):
    """Initialize the usage database."""
    monitor = _open_monitor(ctx)
    monitor.close()
    console.print(f"[green]✓[/] Database initialized at {_config(ctx).storage.path}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def run(
    ctx: typer.Context,
    ticks: Optional[int] = typer.Option(
        None,
        "--ticks",
        "-n",
        help="Stop after this many samples (default: run until Ctrl-C)"
    ),
    window: str = typer.Option("1h", "--window", "-w", help="Window for the running total")
):
    """Sample network counters and store usage until interrupted."""
    time_window = _window_or_exit(window)
    monitor = _open_monitor(ctx)
    interval = _config(ctx).sampling.interval_seconds
    done = threading.Event()
    seen = [0]

    def print_sample(sample: UsageSample) -> None:
        # The sample is stored before subscribers run, so the total includes it
        running = monitor.store.query_total(sample.timestamp - time_window.millis, sample.timestamp)
        console.print(
            f"{_format_time(sample.timestamp)}  "
            f"↓ {format_speed(sample.download_bytes / interval)}  "
            f"↑ {format_speed(sample.upload_bytes / interval)}  "
            f"total {window}: ↓ {format_size(running.download_bytes)} "
            f"↑ {format_size(running.upload_bytes)}"
        )
        seen[0] += 1
        if ticks is not None and seen[0] >= ticks:
            done.set()

    try:
        monitor.loop.subscribe(print_sample)
        monitor.start()
        console.print(f"Monitoring every {interval:g}s, press Ctrl-C to stop")
        while not done.wait(0.5):
            pass
    except KeyboardInterrupt:
        console.print("\nStopping")
    finally:
        monitor.close()
    sys.exit(EXIT_CODE_PASS)


@app.command()
def show(
    ctx: typer.Context,
    window: str = typer.Option("1h", "--window", "-w", help="Window: 5m, 15m, 30m, 1h, 3h, 24h, 7d, 30d, 365d"),
    live: Optional[bool] = typer.Option(
        None,
        "--live/--no-live",
        help="Treat the window as live (default: live for windows up to 1h)"
    ),
    date_from: Optional[str] = typer.Option(None, "--from", help=FROM_HELP),
    date_to: Optional[str] = typer.Option(None, "--to", help=TO_HELP)
):
    """Show transfer rates over a time window or date range."""
    start, end, time_window, label = _range_or_exit(window, date_from, date_to)
    if time_window is None:
        live = False
    elif live is None:
        live = is_live_window(time_window)

    monitor = _open_monitor(ctx)
    try:
        plan, samples = execute_plan(monitor.store, start, end, live)
        window_total = monitor.store.query_total(start, end)
    finally:
        monitor.close()

    if plan.mode is PlanMode.RAW:
        interval_ms = int(_config(ctx).sampling.interval_seconds * 1000)
    else:
        interval_ms = plan.interval_ms

    if not samples:
        console.print("\n[bold yellow]No network usage recorded in this window[/]")
        console.print("Run `netusage run` to start collecting samples.\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Network usage, {label} ({plan.mode.value})")
    table.add_column("Time")
    table.add_column("Download", justify="right")
    table.add_column("Upload", justify="right")
    with_date = end - start > DAY_MS
    for timestamp, down_rate, up_rate in to_rates(samples, interval_ms):
        table.add_row(_format_time(timestamp, with_date), format_speed(down_rate), format_speed(up_rate))
    console.print(table)
    _print_total(window_total)
    sys.exit(EXIT_CODE_PASS)


def _print_total(total: UsageSample) -> None:
    console.print(f"[bold]Total download:[/bold] {format_size(total.download_bytes)}")
    console.print(f"[bold]Total upload:[/bold] {format_size(total.upload_bytes)}")


@app.command()
def total(
    ctx: typer.Context,
    window: str = typer.Option("24h", "--window", "-w", help="Window: 5m, 15m, 30m, 1h, 3h, 24h, 7d, 30d, 365d"),
    date_from: Optional[str] = typer.Option(None, "--from", help=FROM_HELP),
    date_to: Optional[str] = typer.Option(None, "--to", help=TO_HELP)
):
    """Show total usage over a time window or date range."""
    start, end, _, _ = _range_or_exit(window, date_from, date_to)
    monitor = _open_monitor(ctx)
    try:
        usage = monitor.store.query_total(start, end)
    finally:
        monitor.close()
    _print_total(usage)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def export(
    ctx: typer.Context,
    output: str = typer.Argument(..., help="CSV file to write"),
    window: str = typer.Option("30d", "--window", "-w", help="Window: 24h, 7d, 30d, 365d, ..."),
    date_from: Optional[str] = typer.Option(None, "--from", help=FROM_HELP),
    date_to: Optional[str] = typer.Option(None, "--to", help=TO_HELP)
):
    """Export daily usage over a time window or date range to CSV."""
    start, end, _, _ = _range_or_exit(window, date_from, date_to)
    monitor = _open_monitor(ctx)
    try:
        rows = export_rows(monitor.store, start, end)
    finally:
        monitor.close()

    try:
        try:
            with open(output, "w", newline="", encoding="utf-8") as f:
                count = write_csv(rows, f)
        except OSError as e:
            raise ExportFailed(f"Cannot write {output}: {e}") from e
    except ExportFailed as e:
        console.print(f"[red]Export failed:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Exported {count} day(s) to {output}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def prune(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Keep this many days (default: from config)")
):
    """Delete samples older than the retention window."""
    monitor = _open_monitor(ctx)
    try:
        policy = monitor.retention
        if days is not None:
            if days <= 0:
                console.print("[red]Error:[/] --days must be > 0")
                sys.exit(EXIT_CODE_FAIL)
            policy = RetentionPolicy(days=days)
        deleted = policy.apply(monitor.store)
    finally:
        monitor.close()
    console.print(f"[green]✓[/] Removed {deleted} sample(s) older than {policy.days} days")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def clear(
    ctx: typer.Context,
    window: Optional[str] = typer.Option(None, "--window", "-w", help="Delete samples recorded in this window"),
    date_from: Optional[str] = typer.Option(None, "--from", help=FROM_HELP),
    date_to: Optional[str] = typer.Option(None, "--to", help=TO_HELP)
):
    """Delete samples recorded within a recent time window or date range."""
    start, end, _, label = _range_or_exit(window, date_from, date_to)
    monitor = _open_monitor(ctx)
    try:
        deleted = monitor.store.clear_range(start, end)
    finally:
        monitor.close()
    console.print(f"[green]✓[/] Removed {deleted} sample(s) from {label}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def status(ctx: typer.Context):
    """Show where data is stored and how much is there."""
    monitor = _open_monitor(ctx)
    try:
        count = monitor.store.count()
    finally:
        monitor.close()
    console.print(f"Database: {_config(ctx).storage.path}")
    console.print(f"Samples: {count}")
    sys.exit(EXIT_CODE_PASS)


@settings_app.command("get")
def settings_get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting key"),
    default: Optional[str] = typer.Option(None, "--default", help="Value to print when the key is unset")
):
    """Print a setting value."""
    monitor = _open_monitor(ctx)
    try:
        value = monitor.store.get_setting(key, default)
    finally:
        monitor.close()
    if value is None:
        console.print(f"[yellow]{key} is not set[/]")
        sys.exit(EXIT_CODE_FAIL)
    console.print(value)
    sys.exit(EXIT_CODE_PASS)


@settings_app.command("set")
def settings_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting key"),
    value: str = typer.Argument(..., help="Setting value")
):
    """Store a setting value."""
    monitor = _open_monitor(ctx)
    try:
        monitor.store.put_setting(key, value)
    finally:
        monitor.close()
    console.print(f"[green]✓[/] {key} = {value}")
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
