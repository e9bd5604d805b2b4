from __future__ import annotations

import json
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from recon_engine.config import get_settings
from recon_engine.domain.models import DateRange
from recon_engine.errors import ReconciliationError
from recon_engine.orchestrator import RangeSpec, RunConfig, resolve_store, run_reconciliation
from recon_engine.reporter import print_results
from recon_engine.scheduler import SnapshotScheduler
from recon_engine.utils.logging import configure_logging

app = typer.Typer(help="Wallet reconciliation engine CLI.")


def _ranges(
    presets: Optional[List[str]], start: Optional[datetime], end: Optional[datetime]
) -> List[RangeSpec]:
    ranges: List[RangeSpec] = list(presets or [])
    if start is not None or end is not None:
        try:
            ranges.append(DateRange(start=start, end=end))
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--start/--end") from exc
    for name in ranges:
        if isinstance(name, str):
            try:
                DateRange.preset(name)
            except ValueError as exc:
                raise typer.BadParameter(str(exc), param_hint="--range") from exc
    return ranges or ["all"]


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"page_size={settings.page_size} max_rows={settings.max_rows} "
        f"policy={settings.truncation_policy} concurrency={settings.concurrency} "
        f"refresh={settings.refresh_seconds}s"
    )


@app.command()
def compute(
    range_: Optional[List[str]] = typer.Option(
        None,
        "--range",
        "-r",
        help="Preset range to compute (today, 7d, 30d, all). Repeatable.",
    ),
    start: Optional[datetime] = typer.Option(None, "--start", help="Custom range start (inclusive)."),
    end: Optional[datetime] = typer.Option(None, "--end", help="Custom range end (inclusive)."),
    dataset: Optional[Path] = typer.Option(
        None,
        "--dataset",
        "-d",
        exists=True,
        dir_okay=False,
        help="Read records from a JSON dataset instead of PostgreSQL.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print snapshot payloads as JSON."),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Write results to disk."),
    max_rows: Optional[int] = typer.Option(
        None, "--max-rows", min=1, help="Override the per-source row cap."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Fail instead of reporting partial sums when a row cap is hit."
    ),
    processes: Optional[int] = typer.Option(
        None, "--processes", "-p", min=1, help="Worker processes for the wallet replay."
    ),
) -> None:
    """
    Compute financial snapshots for one or more date ranges.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    config = RunConfig(
        ranges=_ranges(range_, start, end),
        dataset=dataset,
        persist=persist,
        processes=processes,
        truncation_policy="strict" if strict else None,
        max_rows=max_rows,
    )
    try:
        results = run_reconciliation(config)
    except ReconciliationError as exc:
        typer.echo(f"Reconciliation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if as_json:
        typer.echo(json.dumps(results, indent=2))
    else:
        print_results(results)

    if any("error" in r for r in results):
        raise typer.Exit(code=1)


@app.command()
def watch(
    range_: Optional[List[str]] = typer.Option(None, "--range", "-r", help="Preset range. Repeatable."),
    dataset: Optional[Path] = typer.Option(None, "--dataset", "-d", exists=True, dir_okay=False),
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", min=0.1, help="Seconds between refreshes (default from settings)."
    ),
) -> None:
    """
    Recompute snapshots on a fixed cadence and persist each successful run.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    config = RunConfig(ranges=_ranges(range_, None, None), dataset=dataset, persist=True)
    store = resolve_store(dataset)
    scheduler = SnapshotScheduler(
        lambda: run_reconciliation(config, store=store),
        interval=interval or settings.refresh_seconds,
    )
    stop = threading.Event()
    typer.echo(f"Refreshing every {scheduler.interval}s; Ctrl+C to stop.")
    try:
        scheduler.run_forever(stop)
    finally:
        stop.set()


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
