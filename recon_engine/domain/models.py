"""
Domain models for the wallet reconciliation engine.

Defines strongly typed, immutable records for every entity read from the
transaction store, plus the date-range filter shared by all queries. Amounts
are Decimal so that attribution sums close exactly against wallet balances.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ZERO = Decimal("0")

_FROZEN = {
    "frozen": True,
    "populate_by_name": True,
    "arbitrary_types_allowed": False,
}


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so mixed rows stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SourceType(str, Enum):
    DEPOSIT = "deposit"
    PURCHASE = "purchase"
    PRIZE = "prize"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"
    REFERRAL = "referral"
    ADMIN_BONUS = "admin_bonus"
    AFFILIATE_COMMISSION = "affiliate_commission"
    BONUS_USED = "bonus_used"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "SourceType":
        """Map a raw tag to a SourceType; unknown or missing tags become OTHER."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.OTHER
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


BONUS_SOURCES = frozenset({SourceType.REFERRAL, SourceType.ADMIN_BONUS})
COMMISSION_SOURCES = frozenset({SourceType.AFFILIATE_COMMISSION})


class ProductLine(str, Enum):
    RAFFLE = "raffle"
    SCRATCH_CARD = "scratch_card"


class DepositStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


SETTLED_WITHDRAWAL_STATUSES = frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.PAID})


class _Record(BaseModel):
    model_config = _FROZEN


class Wallet(_Record):
    """A user's wallet; `balance` is the store's authoritative running total."""

    id: str = Field(..., description="Wallet primary key.")
    user_id: str = Field(..., description="Owning user.")
    balance: Decimal = Field(..., description="Authoritative balance.")


class TransactionRecord(_Record):
    """A signed wallet movement: credit when amount > 0, debit when amount < 0."""

    wallet_id: str = Field(..., description="Wallet the movement belongs to.")
    amount: Decimal = Field(..., description="Signed amount.")
    occurred_at: datetime = Field(..., description="When the movement happened.")
    source_type: SourceType = Field(SourceType.OTHER, description="Funding category tag.")
    id: Optional[str] = Field(None, description="Row id, used as a sort tie-breaker.")
    kind: Optional[str] = Field(None, description="Store transaction type (deposit, purchase...).")

    @field_validator("source_type", mode="before")
    @classmethod
    def _coerce_source_type(cls, value: Any) -> SourceType:
        return SourceType.parse(value)

    @field_validator("occurred_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_credit(self) -> bool:
        return self.amount > ZERO

    @property
    def is_debit(self) -> bool:
        return self.amount < ZERO


class DepositRecord(_Record):
    amount: Decimal
    user_id: str
    status: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_paid(self) -> bool:
        return self.status == DepositStatus.PAID.value


class WithdrawalRecord(_Record):
    amount: Decimal
    status: str
    created_at: datetime
    user_id: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_settled(self) -> bool:
        return self.status in {s.value for s in SETTLED_WITHDRAWAL_STATUSES}


class GameplayRecord(_Record):
    """A scratch play or a raffle ticket purchase."""

    product_line: ProductLine
    price: Decimal
    created_at: datetime
    prize_won: Optional[Decimal] = None
    revealed: bool = True
    user_id: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_win(self) -> bool:
        return self.prize_won is not None and self.prize_won > ZERO


class ReferralRecord(_Record):
    referrer_id: str
    bonus_awarded: Decimal
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class AffiliateSaleRecord(_Record):
    affiliate_id: str
    commission_amount: Decimal
    created_at: datetime
    commission_status: str = "pending"

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class RaffleStatusCounts(_Record):
    total: int = Field(0, ge=0)
    open: int = Field(0, ge=0)

    @property
    def finished(self) -> int:
        return max(self.total - self.open, 0)


class DateRange(_Record):
    """
    Inclusive [start, end] timestamp filter. Both bounds absent means all time.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self

    @classmethod
    def all_time(cls) -> "DateRange":
        return cls()

    @classmethod
    def preset(cls, name: str, now: Optional[datetime] = None) -> "DateRange":
        """
        Build a named range: `today`, `7d`, `30d` or `all`.
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        key = name.strip().lower()
        if key in ("all", "all_time"):
            return cls()
        if key == "today":
            start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            return cls(start=start, end=now)
        if key.endswith("d") and key[:-1].isdigit():
            return cls(start=now - timedelta(days=int(key[:-1])), end=now)
        raise ValueError(f"Unknown date range preset '{name}'. Use today, 7d, 30d or all.")

    @property
    def is_all_time(self) -> bool:
        return self.start is None and self.end is None

    @property
    def label(self) -> str:
        if self.is_all_time:
            return "all time"
        start = self.start.isoformat() if self.start else "-inf"
        end = self.end.isoformat() if self.end else "+inf"
        return f"{start} .. {end}"

    def contains(self, ts: datetime) -> bool:
        ts = _as_utc(ts)
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True


class BalanceAttribution(_Record):
    """
    Split of one wallet's balance into mutually exclusive funding categories.

    principal + bonus + commission == balance, every part >= 0.
    """

    wallet_id: str
    balance: Decimal
    principal: Decimal
    bonus: Decimal
    commission: Decimal

    @model_validator(mode="after")
    def _closes(self) -> "BalanceAttribution":
        if min(self.principal, self.bonus, self.commission) < ZERO:
            raise ValueError("attribution components must be non-negative")
        if self.principal + self.bonus + self.commission != self.balance:
            raise ValueError("attribution does not close against the wallet balance")
        return self


__all__ = [
    "ZERO",
    "SourceType",
    "BONUS_SOURCES",
    "COMMISSION_SOURCES",
    "ProductLine",
    "DepositStatus",
    "WithdrawalStatus",
    "SETTLED_WITHDRAWAL_STATUSES",
    "Wallet",
    "TransactionRecord",
    "DepositRecord",
    "WithdrawalRecord",
    "GameplayRecord",
    "ReferralRecord",
    "AffiliateSaleRecord",
    "RaffleStatusCounts",
    "DateRange",
    "BalanceAttribution",
]
