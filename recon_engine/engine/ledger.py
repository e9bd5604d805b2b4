"""
Transaction ledger replay: attribute each wallet's balance to funding categories.

The wallet balance is ground truth; tagged transactions are evidence of how it
is composed. Each wallet's transactions are replayed in chronological order:

- credits from `referral`/`admin_bonus` fund bonus, `affiliate_commission`
  funds commission, everything else funds principal;
- a `bonus_used` debit consumes bonus only, any excess is dropped;
- any other debit consumes bonus first, then principal, floored at zero.

The folded values are then clamped against the real balance so that
principal + bonus + commission == balance with every part >= 0, even when the
records drift from the running total.
"""

from __future__ import annotations

import multiprocessing as mp
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from recon_engine.domain.models import (
    BONUS_SOURCES,
    COMMISSION_SOURCES,
    ZERO,
    BalanceAttribution,
    SourceType,
    TransactionRecord,
    Wallet,
)
from recon_engine.domain.snapshot import WalletComposition
from recon_engine.engine.ratios import pct
from recon_engine.errors import InsufficientPrincipalError
from recon_engine.utils.logging import get_logger

log = get_logger(__name__)

# Seconds to wait for a fan-out replay before giving up.
POOL_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class LedgerFold:
    """Raw per-category totals before normalization against the balance."""

    principal: Decimal = ZERO
    bonus: Decimal = ZERO
    commission: Decimal = ZERO

    def apply(self, tx: TransactionRecord) -> "LedgerFold":
        amount = tx.amount
        if amount > ZERO:
            if tx.source_type in BONUS_SOURCES:
                return LedgerFold(self.principal, self.bonus + amount, self.commission)
            if tx.source_type in COMMISSION_SOURCES:
                return LedgerFold(self.principal, self.bonus, self.commission + amount)
            return LedgerFold(self.principal + amount, self.bonus, self.commission)

        if amount < ZERO:
            debit = -amount
            if tx.source_type == SourceType.BONUS_USED:
                return LedgerFold(self.principal, max(ZERO, self.bonus - debit), self.commission)
            from_bonus = min(self.bonus, debit)
            return LedgerFold(
                max(ZERO, self.principal - (debit - from_bonus)),
                self.bonus - from_bonus,
                self.commission,
            )

        return self


def _sort_key(tx: TransactionRecord) -> Tuple:
    # occurred_at first; the rest only breaks ties so any permutation of the
    # same records sorts identically.
    return (tx.occurred_at, tx.id or "", tx.amount, tx.source_type.value, tx.kind or "")


def chronological(transactions: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    """Transactions sorted by occurred_at ascending, deterministic on ties."""
    return sorted(transactions, key=_sort_key)


def fold_transactions(transactions: Iterable[TransactionRecord]) -> LedgerFold:
    """
    Fold transactions in the order given, without sorting.

    Use replay_wallet for attribution; this is the order-sensitive building block.
    """
    fold = LedgerFold()
    for tx in transactions:
        fold = fold.apply(tx)
    return fold


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(value, high))


def normalize_fold(fold: LedgerFold, balance: Decimal, wallet_id: str = "") -> BalanceAttribution:
    """
    Close a raw fold against the authoritative balance.

    bonus' is capped by the balance, commission' by what bonus' leaves, and
    principal' takes the residual. A negative balance is attributed as zero.
    """
    total = max(balance, ZERO)
    bonus = _clamp(fold.bonus, ZERO, total)
    commission = _clamp(fold.commission, ZERO, total - bonus)
    principal = total - bonus - commission
    return BalanceAttribution(
        wallet_id=wallet_id,
        balance=total,
        principal=principal,
        bonus=bonus,
        commission=commission,
    )


def replay_wallet(
    wallet: Union[Wallet, Decimal, int, str],
    transactions: Iterable[TransactionRecord] = (),
) -> BalanceAttribution:
    """
    Attribute one wallet's balance: sort chronologically, fold, then normalize.

    A wallet without transactions is attributed entirely to principal.
    """
    if isinstance(wallet, Wallet):
        balance, wallet_id = wallet.balance, wallet.id
    else:
        balance, wallet_id = Decimal(wallet), ""
    fold = fold_transactions(chronological(transactions))
    return normalize_fold(fold, balance, wallet_id=wallet_id)


def _replay_item(item: Tuple[Wallet, List[TransactionRecord]]) -> BalanceAttribution:
    wallet, transactions = item
    return replay_wallet(wallet, transactions)


def withdrawable_principal(wallet: Wallet, transactions: Iterable[TransactionRecord]) -> Decimal:
    """Principal the user may withdraw right now."""
    return replay_wallet(wallet, transactions).principal


def ensure_withdrawable(
    wallet: Wallet, transactions: Iterable[TransactionRecord], amount: Decimal
) -> Decimal:
    """
    Check a payout request against the wallet's attributed principal.

    Returns the available principal; raises InsufficientPrincipalError when
    the request exceeds it. Bonus and commission are never withdrawable here.
    """
    amount = Decimal(amount)
    if amount <= ZERO:
        raise ValueError("Withdrawal amount must be > 0")
    available = withdrawable_principal(wallet, transactions)
    if amount > available:
        raise InsufficientPrincipalError(wallet.id, amount, available)
    return available


@dataclass(frozen=True)
class LedgerReplay:
    """Per-wallet attributions for a whole store plus the anomalies seen."""

    attributions: Dict[str, BalanceAttribution] = field(default_factory=dict)
    orphan_transactions: int = 0
    negative_balance_wallets: Tuple[str, ...] = ()

    def _total(self, attr: str) -> Decimal:
        return sum(
            (getattr(self.attributions[key], attr) for key in sorted(self.attributions)),
            ZERO,
        )

    @property
    def principal(self) -> Decimal:
        return self._total("principal")

    @property
    def bonus(self) -> Decimal:
        return self._total("bonus")

    @property
    def commission(self) -> Decimal:
        return self._total("commission")

    def composition(self) -> WalletComposition:
        principal, bonus, commission = self.principal, self.bonus, self.commission
        return WalletComposition(
            wallet_count=len(self.attributions),
            principal=principal,
            bonus=bonus,
            commission=commission,
            bonus_ratio_pct=pct(bonus, principal + bonus + commission),
        )


def group_by_wallet(
    transactions: Iterable[TransactionRecord],
) -> Dict[str, List[TransactionRecord]]:
    grouped: Dict[str, List[TransactionRecord]] = defaultdict(list)
    for tx in transactions:
        grouped[tx.wallet_id].append(tx)
    return dict(grouped)


def attribute_wallets(
    wallets: Sequence[Wallet],
    transactions: Iterable[TransactionRecord],
    processes: Optional[int] = 1,
) -> LedgerReplay:
    """
    Replay every wallet and collect attributions.

    Transactions referencing an unknown wallet are counted and ignored. With
    processes > 1 the independent per-wallet folds fan out over a spawn-context
    process pool; the result is identical to the sequential path.
    """
    grouped = group_by_wallet(transactions)
    known = {w.id for w in wallets}
    orphans = sum(len(txs) for wallet_id, txs in grouped.items() if wallet_id not in known)
    if orphans:
        log.warning(
            "Transactions reference unknown wallets; ignoring them",
            extra={"orphan_transactions": orphans},
        )

    negative = tuple(sorted(w.id for w in wallets if w.balance < ZERO))
    if negative:
        log.warning(
            "Wallets with negative balance attributed as zero",
            extra={"wallets": list(negative)},
        )

    work = [(w, grouped.get(w.id, [])) for w in wallets]
    if processes and processes > 1 and len(work) > 1:
        ctx = mp.get_context("spawn")
        with ctx.Pool(processes=processes) as pool:
            results = pool.map_async(_replay_item, work).get(timeout=POOL_TIMEOUT_SECONDS)
    else:
        results = [_replay_item(item) for item in work]

    attributions = {attr.wallet_id: attr for attr in results}
    log.debug("Replayed wallets", extra={"wallets": len(attributions), "processes": processes})
    return LedgerReplay(
        attributions=attributions,
        orphan_transactions=orphans,
        negative_balance_wallets=negative,
    )


__all__ = [
    "LedgerFold",
    "LedgerReplay",
    "chronological",
    "fold_transactions",
    "normalize_fold",
    "replay_wallet",
    "group_by_wallet",
    "attribute_wallets",
    "withdrawable_principal",
    "ensure_withdrawable",
]
