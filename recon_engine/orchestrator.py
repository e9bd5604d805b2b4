"""
Orchestrator for computing snapshots over one or more date ranges, profiling
each run, and persisting the results.

Usage (example from CLI):
    from recon_engine.orchestrator import RunConfig, run_reconciliation

    results = run_reconciliation(RunConfig(ranges=["today", "30d"]))
    print(results)

Outputs are saved to `results/` by default:
- `results/latest.json` (last fully successful run)
- `results/run-<timestamp>.json` (timestamped archive, failures included)
"""

from __future__ import annotations

import json
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from recon_engine.config import get_settings
from recon_engine.domain.models import DateRange
from recon_engine.domain.snapshot import FinancialSnapshot
from recon_engine.engine.alerts import AlertThresholds
from recon_engine.engine.report import compute_snapshot
from recon_engine.store.base import TransactionStore, TruncationPolicy
from recon_engine.store.memory import InMemoryTransactionStore
from recon_engine.utils.logging import get_logger
from recon_engine.utils.profiler import profile_block

log = get_logger(__name__)

RangeSpec = Union[str, DateRange]
FailurePolicy = Literal["tolerant", "strict"]


@dataclass
class RunConfig:
    """
    Parameters for one orchestrated reconciliation run.

    `ranges` takes preset names (today, 7d, 30d, all) or DateRange objects.
    Unset numeric fields fall back to settings.
    """

    ranges: Sequence[RangeSpec] = field(default_factory=lambda: ["all"])
    dataset: Optional[Path] = None
    persist: bool = True
    results_dir: Optional[Path] = None
    concurrency: Optional[int] = None
    processes: Optional[int] = None
    failure_policy: FailurePolicy = "tolerant"
    truncation_policy: Optional[TruncationPolicy] = None
    max_rows: Optional[int] = None
    computed_at: Optional[datetime] = None


def thresholds_from_settings() -> AlertThresholds:
    settings = get_settings()
    return AlertThresholds(
        bonus_ratio_pct=settings.alert_bonus_ratio_pct,
        rtp_pct=settings.alert_rtp_pct,
    )


def resolve_store(
    dataset: Optional[Path] = None, max_rows: Optional[int] = None
) -> TransactionStore:
    """
    JSON dataset file -> in-memory store; otherwise the configured PostgreSQL store.
    """
    settings = get_settings()
    cap = max_rows or settings.max_rows
    if dataset is not None:
        return InMemoryTransactionStore.from_json(dataset, max_rows=cap)
    from recon_engine.store.postgres import PostgresTransactionStore

    return PostgresTransactionStore(page_size=settings.page_size, max_rows=cap)


def resolve_ranges(ranges: Sequence[RangeSpec], now: datetime) -> Dict[str, DateRange]:
    """Map each preset name or range to a labelled DateRange; presets share the same `now`."""
    resolved: Dict[str, DateRange] = {}
    for item in ranges:
        if isinstance(item, DateRange):
            resolved[item.label] = item
        else:
            resolved[item] = DateRange.preset(item, now=now)
    return resolved


def _profiled_compute(
    store: TransactionStore,
    key: str,
    date_range: DateRange,
    computed_at: datetime,
    thresholds: AlertThresholds,
    processes: int,
    truncation_policy: TruncationPolicy,
) -> FinancialSnapshot:
    log.info(f"[RANGE START] {key}", extra={"range": key})
    with profile_block(f"snapshot:{key}") as stats:
        snapshot = compute_snapshot(
            store,
            date_range,
            computed_at=computed_at,
            thresholds=thresholds,
            truncation_policy=truncation_policy,
            processes=processes,
        )
    log.info(f"[RANGE SUCCESS] {key}", extra={"range": key, **stats.as_log_fields()})
    return snapshot


def compute_snapshots(
    store: TransactionStore,
    ranges: Sequence[RangeSpec],
    concurrency: Optional[int] = None,
    computed_at: Optional[datetime] = None,
    thresholds: Optional[AlertThresholds] = None,
    processes: Optional[int] = None,
    failure_policy: FailurePolicy = "tolerant",
    truncation_policy: Optional[TruncationPolicy] = None,
) -> Dict[str, Union[FinancialSnapshot, Exception]]:
    """
    Compute one snapshot per range, in parallel threads.

    Each range is an independent read-and-fold; a failing range yields its
    exception in the result map (tolerant) or is re-raised (strict). All
    snapshots of one call share `computed_at`.
    """
    settings = get_settings()
    computed_at = computed_at or datetime.now(timezone.utc)
    thresholds = thresholds or thresholds_from_settings()
    workers = concurrency or settings.concurrency
    procs = processes or settings.processes
    policy = truncation_policy or settings.truncation_policy
    resolved = resolve_ranges(ranges, computed_at)

    results: Dict[str, Union[FinancialSnapshot, Exception]] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(resolved) or 1))) as pool:
        futures = {
            key: pool.submit(
                _profiled_compute,
                store,
                key,
                date_range,
                computed_at,
                thresholds,
                procs,
                policy,
            )
            for key, date_range in resolved.items()
        }
        for key, future in futures.items():
            try:
                results[key] = future.result()
            except Exception as exc:  # noqa: BLE001 - recorded per range in tolerant mode
                log.exception(f"[RANGE FAILED] {key}", extra={"range": key})
                if failure_policy == "strict":
                    raise
                results[key] = exc
    return results


def _atomic_write_json(payload: dict, path: Path) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _persist_results(payload: dict, results_dir: Path, update_latest: bool) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    _atomic_write_json(payload, archive_path)
    if update_latest:
        _atomic_write_json(payload, latest_path)
    else:
        log.warning(
            "Run had failures; keeping previous latest.json",
            extra={"latest": str(latest_path)},
        )

    log.info(
        "Results persisted",
        extra={"latest": str(latest_path) if update_latest else None, "archive": str(archive_path)},
    )


def _result_entry(key: str, outcome: Union[FinancialSnapshot, Exception]) -> Dict[str, Any]:
    if isinstance(outcome, Exception):
        return {
            "range": key,
            "error": str(outcome),
            "error_type": type(outcome).__name__,
        }
    entry = outcome.to_payload()
    entry["range"] = key
    return entry


def run_reconciliation(
    config: Optional[RunConfig] = None,
    store: Optional[TransactionStore] = None,
) -> List[Dict[str, Any]]:
    """
    Compute the configured ranges and optionally persist the results.

    Returns one JSON-ready dict per range, in the order requested; failed
    ranges carry `error` and `error_type` instead of metrics.
    """
    config = config or RunConfig()
    settings = get_settings()
    store = store or resolve_store(config.dataset, max_rows=config.max_rows)
    computed_at = config.computed_at or datetime.now(timezone.utc)

    outcomes = compute_snapshots(
        store,
        config.ranges,
        concurrency=config.concurrency,
        computed_at=computed_at,
        processes=config.processes,
        failure_policy=config.failure_policy,
        truncation_policy=config.truncation_policy,
    )
    results = [_result_entry(key, outcome) for key, outcome in outcomes.items()]
    failed = [r["range"] for r in results if "error" in r]

    payload = {
        "computed_at": computed_at.isoformat(),
        "store": store.name,
        "ranges": list(outcomes),
        "results": results,
    }
    if config.persist:
        _persist_results(
            payload, Path(config.results_dir or settings.results_dir), update_latest=not failed
        )

    log.info(
        f"[ORCHESTRATOR COMPLETE] {len(results) - len(failed)}/{len(results)} ranges computed",
        extra={"ranges": list(outcomes), "failed": failed},
    )
    return results


__all__ = [
    "RunConfig",
    "compute_snapshots",
    "resolve_ranges",
    "resolve_store",
    "run_reconciliation",
    "thresholds_from_settings",
]
