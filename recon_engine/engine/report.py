"""
Report assembly: one reconciliation run end to end.

`assemble_snapshot` is a pure function of a LedgerDataset; `compute_snapshot`
reads the dataset from a store first. Given the same records, range and
`computed_at`, both return equal snapshots.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Mapping, Optional

from recon_engine.domain.models import DateRange, ProductLine
from recon_engine.domain.snapshot import DataQuality, EngagementMetrics, FinancialSnapshot
from recon_engine.engine.alerts import AlertThresholds, evaluate_alerts
from recon_engine.engine.cash import reconcile_cash
from recon_engine.engine.ledger import LedgerReplay, attribute_wallets
from recon_engine.engine.programs import aggregate_program_costs
from recon_engine.engine.ratios import pct, safe_div
from recon_engine.engine.revenue import compute_revenue, raffle_performance, scratch_performance
from recon_engine.store.base import LedgerDataset, TransactionStore, TruncationPolicy, load_dataset
from recon_engine.utils.logging import get_logger

log = get_logger(__name__)


def _engagement(
    dataset: LedgerDataset, revenue: Decimal, total_deposits: Decimal, deposit_count: int
) -> EngagementMetrics:
    depositors = {d.user_id for d in dataset.deposits if d.is_paid}
    total_users = dataset.total_users
    return EngagementMetrics(
        total_users=total_users,
        users_with_deposit=len(depositors),
        conversion_rate_pct=pct(len(depositors), total_users),
        average_deposit=safe_div(total_deposits, deposit_count),
        average_spend_per_user=safe_div(revenue, total_users),
    )


def _data_quality(dataset: LedgerDataset, replay: LedgerReplay) -> DataQuality:
    warnings: List[str] = []
    if dataset.truncated:
        warnings.append(
            "Row cap reached for " + ", ".join(dataset.truncated_sources) + "; sums may be partial"
        )
    if replay.orphan_transactions:
        warnings.append(f"{replay.orphan_transactions} transactions reference unknown wallets")
    if replay.negative_balance_wallets:
        warnings.append(
            f"{len(replay.negative_balance_wallets)} wallets have a negative balance"
        )
    return DataQuality(
        truncated=dataset.truncated,
        truncated_sources=dataset.truncated_sources,
        orphan_transactions=replay.orphan_transactions,
        negative_balance_wallets=replay.negative_balance_wallets,
        warnings=tuple(warnings),
    )


def assemble_snapshot(
    dataset: LedgerDataset,
    computed_at: datetime,
    thresholds: Optional[AlertThresholds] = None,
    payouts: Optional[Mapping[ProductLine, Decimal]] = None,
    processes: Optional[int] = 1,
) -> FinancialSnapshot:
    """
    Compose every metric for one dataset into an immutable snapshot.

    Parameters
    ----------
    dataset : LedgerDataset
        Point-in-time read of the store for the snapshot's date range.
    computed_at : datetime
        Timestamp stamped on the snapshot.
    thresholds : AlertThresholds | None
        Alert policy; defaults to the module constants.
    payouts : Mapping[ProductLine, Decimal] | None
        Explicit prize payout per product line, overriding the derived one.
    processes : int | None
        Worker processes for the per-wallet replay.
    """
    replay = attribute_wallets(dataset.wallets, dataset.transactions, processes=processes)
    composition = replay.composition()

    cash = reconcile_cash(
        dataset.deposits,
        dataset.withdrawals,
        committed_principal=composition.principal,
        admin_withdrawals=dataset.admin_withdrawals,
    )
    revenue = compute_revenue(dataset.gameplay, payouts=payouts)
    scratch = scratch_performance(dataset.gameplay, revenue)
    programs = aggregate_program_costs(dataset.referrals, dataset.affiliate_sales, revenue.revenue)
    alerts = evaluate_alerts(cash, composition, scratch, thresholds)

    return FinancialSnapshot(
        computed_at=computed_at,
        date_range=dataset.date_range,
        wallets=composition,
        cash=cash,
        revenue=revenue,
        scratch=scratch,
        raffles=raffle_performance(dataset.raffle_counts, revenue),
        programs=programs,
        engagement=_engagement(dataset, revenue.revenue, cash.total_deposits, cash.deposit_count),
        alerts=alerts,
        data_quality=_data_quality(dataset, replay),
    )


def compute_snapshot(
    store: TransactionStore,
    date_range: Optional[DateRange] = None,
    computed_at: Optional[datetime] = None,
    thresholds: Optional[AlertThresholds] = None,
    payouts: Optional[Mapping[ProductLine, Decimal]] = None,
    truncation_policy: TruncationPolicy = "tolerant",
    processes: Optional[int] = 1,
) -> FinancialSnapshot:
    """
    Read a dataset from `store` and assemble its snapshot.

    Store failures propagate (StoreUnavailableError); nothing partial is
    returned. `computed_at` defaults to now (UTC).
    """
    date_range = date_range or DateRange()
    computed_at = computed_at or datetime.now(timezone.utc)
    log.info(
        f"[SNAPSHOT START] {date_range.label}",
        extra={"store": store.name, "range": date_range.label},
    )
    dataset = load_dataset(store, date_range, truncation_policy=truncation_policy)
    snapshot = assemble_snapshot(
        dataset, computed_at, thresholds=thresholds, payouts=payouts, processes=processes
    )
    log.info(
        f"[SNAPSHOT COMPLETE] {date_range.label}",
        extra={
            "store": store.name,
            "range": date_range.label,
            "wallets": snapshot.wallets.wallet_count,
            "available_to_operator": str(snapshot.cash.available_to_operator),
            "alerts": snapshot.alerts.active(),
            "degraded": snapshot.data_quality.degraded,
        },
    )
    if snapshot.alerts.insufficient_cash:
        log.warning(
            "Real cash does not cover user principal",
            extra={"available_to_operator": str(snapshot.cash.available_to_operator)},
        )
    return snapshot


__all__ = ["assemble_snapshot", "compute_snapshot"]
