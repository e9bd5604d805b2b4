"""
Transaction store interface and the point-in-time dataset a run works on.

A store is a read-only source of typed records. Every fetch returns a
`Fetched` batch that says whether a row cap cut it short, so truncation is
always visible to the caller instead of silently shrinking the sums.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    List,
    Literal,
    Protocol,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from pydantic import BaseModel, ValidationError

from recon_engine.domain.models import (
    ZERO,
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
from recon_engine.errors import RecordValidationError, TruncatedInputError
from recon_engine.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

TruncationPolicy = Literal["tolerant", "strict"]


@dataclass(frozen=True)
class Fetched(Generic[T]):
    """Rows read from one source, flagged when a row cap stopped the read."""

    source: str
    rows: List[T] = field(default_factory=list)
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.rows)


def parse_rows(model: type[M], entity: str, rows: Iterable[Any]) -> List[M]:
    """
    Validate raw rows (mappings or model instances) into typed records.

    A row missing a required field raises RecordValidationError rather than
    being read as zero.
    """
    parsed: List[M] = []
    for row in rows:
        if isinstance(row, model):
            parsed.append(row)
            continue
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            raise RecordValidationError(entity, row, str(exc)) from exc
    return parsed


@runtime_checkable
class TransactionStore(Protocol):
    """
    Read-only view over the platform's records.

    Wallets and raffle counts are current state and take no range; every
    other fetch honors the inclusive DateRange on its timestamp column.
    """

    name: str

    def fetch_wallets(self) -> Fetched[Wallet]: ...

    def fetch_transactions(self, date_range: DateRange) -> Fetched[TransactionRecord]: ...

    def fetch_deposits(self, date_range: DateRange) -> Fetched[DepositRecord]: ...

    def fetch_withdrawals(self, date_range: DateRange) -> Fetched[WithdrawalRecord]: ...

    def fetch_gameplay(self, date_range: DateRange) -> Fetched[GameplayRecord]: ...

    def fetch_referrals(self, date_range: DateRange) -> Fetched[ReferralRecord]: ...

    def fetch_affiliate_sales(self, date_range: DateRange) -> Fetched[AffiliateSaleRecord]: ...

    def count_users(self) -> int: ...

    def raffle_status_counts(self) -> RaffleStatusCounts: ...


@dataclass(frozen=True)
class LedgerDataset:
    """Everything one reconciliation run reads, fetched up front."""

    date_range: DateRange = field(default_factory=DateRange)
    wallets: List[Wallet] = field(default_factory=list)
    transactions: List[TransactionRecord] = field(default_factory=list)
    deposits: List[DepositRecord] = field(default_factory=list)
    withdrawals: List[WithdrawalRecord] = field(default_factory=list)
    gameplay: List[GameplayRecord] = field(default_factory=list)
    referrals: List[ReferralRecord] = field(default_factory=list)
    affiliate_sales: List[AffiliateSaleRecord] = field(default_factory=list)
    total_users: int = 0
    raffle_counts: RaffleStatusCounts = field(default_factory=RaffleStatusCounts)
    admin_withdrawals: Decimal = ZERO
    truncated_sources: Tuple[str, ...] = ()

    @property
    def truncated(self) -> bool:
        return bool(self.truncated_sources)


def load_dataset(
    store: TransactionStore,
    date_range: DateRange | None = None,
    truncation_policy: TruncationPolicy = "tolerant",
) -> LedgerDataset:
    """
    Read a complete dataset from a store.

    Under the strict policy any truncated source raises TruncatedInputError;
    under the tolerant policy the truncated sources are recorded on the
    dataset and end up flagged on the snapshot.
    """
    date_range = date_range or DateRange()
    fetches: List[Tuple[str, Callable[[], Fetched[Any]]]] = [
        ("wallets", store.fetch_wallets),
        ("transactions", lambda: store.fetch_transactions(date_range)),
        ("deposits", lambda: store.fetch_deposits(date_range)),
        ("withdrawals", lambda: store.fetch_withdrawals(date_range)),
        ("gameplay", lambda: store.fetch_gameplay(date_range)),
        ("referrals", lambda: store.fetch_referrals(date_range)),
        ("affiliate_sales", lambda: store.fetch_affiliate_sales(date_range)),
    ]

    loaded = {}
    truncated: List[str] = []
    for key, fetch in fetches:
        batch = fetch()
        loaded[key] = batch.rows
        if batch.truncated:
            truncated.append(batch.source)
        log.debug(
            f"[FETCH] {batch.source}",
            extra={"source": batch.source, "rows": len(batch), "truncated": batch.truncated},
        )

    if truncated:
        max_rows = getattr(store, "max_rows", None)
        if truncation_policy == "strict":
            raise TruncatedInputError(truncated, max_rows or 0)
        log.warning(
            "Row cap reached; snapshot will be flagged as truncated",
            extra={"sources": truncated, "max_rows": max_rows},
        )

    return LedgerDataset(
        date_range=date_range,
        total_users=store.count_users(),
        raffle_counts=store.raffle_status_counts(),
        truncated_sources=tuple(truncated),
        **loaded,
    )


__all__ = [
    "Fetched",
    "LedgerDataset",
    "TransactionStore",
    "TruncationPolicy",
    "load_dataset",
    "parse_rows",
]
