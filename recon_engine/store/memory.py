"""
In-memory transaction store.

Backs tests, the synthetic data generator, and `compute --dataset file.json`.
Rows are validated into typed records on construction, so a malformed fixture
fails before any run starts.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from recon_engine.domain.models import (
    AffiliateSaleRecord,
    DateRange,
    DepositRecord,
    GameplayRecord,
    RaffleStatusCounts,
    ReferralRecord,
    TransactionRecord,
    Wallet,
    WithdrawalRecord,
)
from recon_engine.store.base import Fetched, parse_rows

T = TypeVar("T")

# JSON dataset sections, in load order.
SECTIONS = (
    "wallets",
    "transactions",
    "deposits",
    "withdrawals",
    "gameplay",
    "referrals",
    "affiliate_sales",
)


class InMemoryTransactionStore:
    """
    A TransactionStore over Python lists.

    `max_rows` mimics a query row cap: a source holding more matching rows
    than the cap returns the first `max_rows` of them flagged as truncated.
    """

    name: str = "memory"

    def __init__(
        self,
        wallets: Iterable[Any] = (),
        transactions: Iterable[Any] = (),
        deposits: Iterable[Any] = (),
        withdrawals: Iterable[Any] = (),
        gameplay: Iterable[Any] = (),
        referrals: Iterable[Any] = (),
        affiliate_sales: Iterable[Any] = (),
        total_users: Optional[int] = None,
        raffle_counts: Optional[RaffleStatusCounts | Mapping[str, int]] = None,
        max_rows: Optional[int] = None,
    ) -> None:
        self.wallets = parse_rows(Wallet, "wallet", wallets)
        self.transactions = parse_rows(TransactionRecord, "transaction", transactions)
        self.deposits = parse_rows(DepositRecord, "deposit", deposits)
        self.withdrawals = parse_rows(WithdrawalRecord, "withdrawal", withdrawals)
        self.gameplay = parse_rows(GameplayRecord, "gameplay", gameplay)
        self.referrals = parse_rows(ReferralRecord, "referral", referrals)
        self.affiliate_sales = parse_rows(AffiliateSaleRecord, "affiliate_sale", affiliate_sales)
        self.total_users = total_users
        if raffle_counts is None or isinstance(raffle_counts, RaffleStatusCounts):
            self.raffle_counts = raffle_counts or RaffleStatusCounts()
        else:
            self.raffle_counts = RaffleStatusCounts.model_validate(raffle_counts)
        self.max_rows = max_rows

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], max_rows: Optional[int] = None) -> "InMemoryTransactionStore":
        sections = {key: data.get(key, ()) for key in SECTIONS}
        return cls(
            **sections,
            total_users=data.get("total_users"),
            raffle_counts=data.get("raffle_counts"),
            max_rows=max_rows,
        )

    @classmethod
    def from_json(cls, path: Path | str, max_rows: Optional[int] = None) -> "InMemoryTransactionStore":
        with Path(path).open("r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f), max_rows=max_rows)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            key: [row.model_dump(mode="json") for row in getattr(self, key)] for key in SECTIONS
        }
        payload["total_users"] = self.count_users()
        payload["raffle_counts"] = self.raffle_counts.model_dump(mode="json")
        return payload

    def _capped(self, source: str, rows: Sequence[T]) -> Fetched[T]:
        if self.max_rows is not None and len(rows) > self.max_rows:
            return Fetched(source=source, rows=list(rows[: self.max_rows]), truncated=True)
        return Fetched(source=source, rows=list(rows))

    def _filtered(
        self,
        source: str,
        rows: Sequence[T],
        date_range: DateRange,
        stamp: Callable[[T], Any],
    ) -> Fetched[T]:
        matched: List[T] = [row for row in rows if date_range.contains(stamp(row))]
        return self._capped(source, matched)

    def fetch_wallets(self) -> Fetched[Wallet]:
        return self._capped("wallets", self.wallets)

    def fetch_transactions(self, date_range: DateRange) -> Fetched[TransactionRecord]:
        return self._filtered("transactions", self.transactions, date_range, lambda r: r.occurred_at)

    def fetch_deposits(self, date_range: DateRange) -> Fetched[DepositRecord]:
        return self._filtered("deposits", self.deposits, date_range, lambda r: r.created_at)

    def fetch_withdrawals(self, date_range: DateRange) -> Fetched[WithdrawalRecord]:
        return self._filtered("withdrawals", self.withdrawals, date_range, lambda r: r.created_at)

    def fetch_gameplay(self, date_range: DateRange) -> Fetched[GameplayRecord]:
        return self._filtered("gameplay", self.gameplay, date_range, lambda r: r.created_at)

    def fetch_referrals(self, date_range: DateRange) -> Fetched[ReferralRecord]:
        return self._filtered("referrals", self.referrals, date_range, lambda r: r.created_at)

    def fetch_affiliate_sales(self, date_range: DateRange) -> Fetched[AffiliateSaleRecord]:
        return self._filtered(
            "affiliate_sales", self.affiliate_sales, date_range, lambda r: r.created_at
        )

    def count_users(self) -> int:
        if self.total_users is not None:
            return self.total_users
        return len({w.user_id for w in self.wallets})

    def raffle_status_counts(self) -> RaffleStatusCounts:
        return self.raffle_counts


__all__ = ["InMemoryTransactionStore", "SECTIONS"]
