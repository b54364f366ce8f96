"""
pagepulse command line.

    pagepulse check-config pagepulse.toml
    pagepulse replay metrics.jsonl --config pagepulse.toml --format json

replay reads one JSON object per line (``{"name": "lcp", "value": 3100,
"timestamp": 1700000000000, "url": "https://shop.example/"}``), runs each
metric through enrichment and the budget validator, and prints the
resulting budget report. Timestamps drive the validator clock so windows
and bursts behave as they did when the metrics were recorded.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from pagepulse._version import get_version
from pagepulse.budget import BudgetReport, BudgetValidator
from pagepulse.config import MonitorConfig, load_config
from pagepulse.context import MonitorContext
from pagepulse.enrichment import enrich
from pagepulse.errors import ConfigurationError
from pagepulse.host import InMemoryHost
from pagepulse.logging import setup_logging
from pagepulse.models import ConnectionInfo, Metric, Viewport, now_ms

app = typer.Typer(
    help="pagepulse: performance budgets and telemetry tooling.",
    no_args_is_help=True,
)

console = Console()

_SEVERITY_STYLES = {"high": "red", "medium": "yellow", "low": "cyan"}


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pagepulse {get_version()}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    log_file: Annotated[
        Path | None, typer.Option("--log-file", help="Also write JSONL logs to this file")
    ] = None,
) -> None:
    """Performance budgets and telemetry tooling."""
    setup_logging(logging.DEBUG if verbose else logging.ERROR, log_file)


def _load(config_path: Path) -> MonitorConfig:
    try:
        return load_config(config_path)
    except ConfigurationError as e:
        typer.secho(f"Error: {e.message}", fg=typer.colors.RED, err=True)
        for error in e.detail.get("errors", []):  # type: ignore[union-attr]
            loc = ".".join(str(part) for part in error.get("loc", ()))
            typer.echo(f"  {loc}: {error.get('msg', '')}", err=True)
        raise typer.Exit(code=1)


# =============================================================================
# Commands
# =============================================================================


@app.command("check-config")
def check_config(
    path: Annotated[Path, typer.Argument(help="TOML file with a [pagepulse] table")],
) -> None:
    """Validate a configuration file and list its budgets."""
    config = _load(path)

    typer.secho(f"\n{path}: valid (build {config.build_version})", fg=typer.colors.GREEN)
    if not config.budgets:
        typer.echo("  No budgets configured; nothing will be enforced.")
        return

    table = Table(title="Budgets")
    table.add_column("Metric", style="cyan")
    table.add_column("Threshold", justify="right")
    table.add_column("Unit")
    for name, entry in sorted(config.budgets.items()):
        table.add_row(name, f"{entry.threshold:g}", entry.unit)
    console.print(table)

    buffer = config.buffer
    endpoint = buffer.endpoint or "(none, events discarded)"
    console.print(
        f"Buffer: capacity {buffer.capacity}, flush every {buffer.flush_interval_ms:g}ms, "
        f"endpoint {endpoint}"
    )
    caps = ", ".join(f"{k}={v}" for k, v in config.preload.caps.items())
    console.print(f"Preload caps: {caps}")


@app.command("replay")
def replay(
    metrics_file: Annotated[Path, typer.Argument(help="JSONL file of recorded metrics")],
    config_path: Annotated[Path, typer.Option("--config", "-c", help="Configuration TOML")],
    window_ms: Annotated[
        float, typer.Option("--window-ms", "-w", help="Report window in milliseconds")
    ] = 24 * 60 * 60 * 1000.0,
    format_: Annotated[str, typer.Option("--format", "-f", help="table or json")] = "table",
    fail_on_high: Annotated[
        bool, typer.Option("--fail-on-high", help="Exit 1 if any high-severity violation")
    ] = False,
) -> None:
    """Run recorded metrics through the budget validator and print the report."""
    if format_ not in ("table", "json"):
        typer.echo(f"Error: unknown format '{format_}'", err=True)
        raise typer.Exit(code=1)

    config = _load(config_path)
    records = _read_records(metrics_file)

    clock = _ReplayClock()
    host = InMemoryHost()
    context = MonitorContext(host=host, build_version=config.build_version, clock=clock)
    validator = BudgetValidator(
        config.budgets,
        severity=config.severity,
        escalation=config.escalation,
        clock=clock,
    )

    for record in records:
        _apply_context(host, context, record)
        metric = Metric.create(
            record["name"],
            record["value"],
            source="replay",
            timestamp=record.get("timestamp"),
            attributes=record.get("attributes"),
        )
        clock.now = metric.timestamp
        validator.validate(enrich(metric, context))

    report = validator.generate_report(window_ms)
    if format_ == "json":
        typer.echo(report.to_json())
    else:
        typer.secho(
            f"\nReplayed {len(records)} metrics from {metrics_file}", bold=True
        )
        _print_report(report)

    if fail_on_high and report.by_severity.get("high", 0):
        raise typer.Exit(code=1)


# =============================================================================
# Helpers
# =============================================================================


class _ReplayClock:
    """Clock that reports the timestamp of the metric being replayed."""

    def __init__(self) -> None:
        self.now = now_ms()

    def __call__(self) -> float:
        return self.now


def _read_records(path: Path) -> list[dict[str, Any]]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        typer.echo(f"Error: cannot read {path}: {e}", err=True)
        raise typer.Exit(code=1)

    records: list[dict[str, Any]] = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
            if not isinstance(record, dict) or "name" not in record:
                raise ValueError("expected an object with name and value")
            float(record["value"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            typer.echo(f"Error: {path}:{lineno}: invalid metric record ({e})", err=True)
            raise typer.Exit(code=1)
        records.append(record)
    return records


def _apply_context(host: InMemoryHost, context: MonitorContext, record: dict[str, Any]) -> None:
    if "url" in record:
        host.navigate(str(record["url"]))
    if "session_id" in record:
        context.session_id = str(record["session_id"])
    if "user_id" in record:
        context.identify(record["user_id"])
    if "effective_type" in record:
        host.set_connection(ConnectionInfo(effective_type=record["effective_type"]))
    if "viewport_width" in record:
        host.set_viewport(
            Viewport(width=int(record["viewport_width"]), height=int(record.get("viewport_height", 0)))
        )


def _print_report(report: BudgetReport) -> None:
    health_color = "green" if report.budget_health >= 80 else "yellow"
    if report.budget_health < 50:
        health_color = "red"
    console.print(
        f"Budget health: [{health_color}]{report.budget_health:.1f}%[/{health_color}] "
        f"({report.total_violations} violations across "
        f"{len(report.violated_metrics)}/{report.configured_metrics} budgets)"
    )
    if not report.by_metric:
        return

    table = Table(title=f"Violations (last {report.window_ms:g}ms)")
    table.add_column("Metric", style="cyan")
    for severity in ("high", "medium", "low"):
        table.add_column(severity, justify="right", style=_SEVERITY_STYLES[severity])
    table.add_column("total", justify="right")
    for name, counts in report.by_metric.items():
        table.add_row(
            name,
            str(counts["high"]),
            str(counts["medium"]),
            str(counts["low"]),
            str(counts["total"]),
        )
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
