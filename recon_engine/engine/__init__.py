"""
Reconciliation engine: pure computations from typed records to a snapshot.

Leaves first: ledger replay, cash reserve, revenue/margin, program cost,
health alerts, and the report assembler that composes them.
"""

from recon_engine.engine.alerts import (
    BONUS_RATIO_ALERT_PCT,
    RTP_ALERT_PCT,
    AlertThresholds,
    evaluate_alerts,
)
from recon_engine.engine.cash import reconcile_cash
from recon_engine.engine.ledger import (
    LedgerFold,
    LedgerReplay,
    attribute_wallets,
    ensure_withdrawable,
    fold_transactions,
    normalize_fold,
    replay_wallet,
    withdrawable_principal,
)
from recon_engine.engine.programs import aggregate_program_costs
from recon_engine.engine.report import assemble_snapshot, compute_snapshot
from recon_engine.engine.revenue import compute_revenue, scratch_performance, summarize_line

__all__ = [
    "BONUS_RATIO_ALERT_PCT",
    "RTP_ALERT_PCT",
    "AlertThresholds",
    "evaluate_alerts",
    "reconcile_cash",
    "LedgerFold",
    "LedgerReplay",
    "attribute_wallets",
    "ensure_withdrawable",
    "fold_transactions",
    "normalize_fold",
    "replay_wallet",
    "withdrawable_principal",
    "aggregate_program_costs",
    "assemble_snapshot",
    "compute_snapshot",
    "compute_revenue",
    "scratch_performance",
    "summarize_line",
]
