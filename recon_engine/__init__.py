"""
Wallet reconciliation engine for a raffle and scratch-card platform.

Replays each wallet's transaction ledger to split its balance into principal,
bonus and commission, then reconciles real cash against user principal and
reports revenue, margin, program cost and health alerts as an immutable
financial snapshot.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from recon_engine.config import Settings, get_settings
from recon_engine.domain.models import DateRange
from recon_engine.domain.snapshot import FinancialSnapshot
from recon_engine.engine.report import assemble_snapshot, compute_snapshot
from recon_engine.orchestrator import RunConfig, compute_snapshots, run_reconciliation
from recon_engine.scheduler import SnapshotScheduler
from recon_engine.store.memory import InMemoryTransactionStore
from recon_engine.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core
    "DateRange",
    "FinancialSnapshot",
    "assemble_snapshot",
    "compute_snapshot",
    "InMemoryTransactionStore",
    # Orchestration
    "RunConfig",
    "compute_snapshots",
    "run_reconciliation",
    "SnapshotScheduler",
    # Logging
    "configure_logging",
    "get_logger",
]
