"""
Output value objects produced by a reconciliation run.

A FinancialSnapshot is immutable and has no identity beyond its computation
timestamp and date range; the next run supersedes it rather than mutating it.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field

from recon_engine.domain.models import ZERO, DateRange, ProductLine

_FROZEN = {"frozen": True, "populate_by_name": True}


class _Value(BaseModel):
    model_config = _FROZEN


class WalletComposition(_Value):
    """System-wide sums of per-wallet attributions."""

    wallet_count: int = 0
    principal: Decimal = ZERO
    bonus: Decimal = ZERO
    commission: Decimal = ZERO
    bonus_ratio_pct: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.principal + self.bonus + self.commission


class CashReserve(_Value):
    total_deposits: Decimal = ZERO
    deposit_count: int = 0
    total_user_withdrawals: Decimal = ZERO
    total_admin_withdrawals: Decimal = ZERO
    real_cash: Decimal = ZERO
    committed_principal: Decimal = ZERO
    available_to_operator: Decimal = ZERO


class ProductLineResult(_Value):
    product_line: ProductLine
    sales: int = 0
    revenue: Decimal = ZERO
    payout: Decimal = ZERO
    margin_pct: Decimal = ZERO


class RevenueMargin(_Value):
    lines: Tuple[ProductLineResult, ...] = ()
    revenue: Decimal = ZERO
    payout: Decimal = ZERO
    margin_pct: Decimal = ZERO

    def line(self, product_line: ProductLine) -> ProductLineResult:
        for result in self.lines:
            if result.product_line == product_line:
                return result
        return ProductLineResult(product_line=product_line)


class ScratchPerformance(_Value):
    plays: int = 0
    wins: int = 0
    revenue: Decimal = ZERO
    payout: Decimal = ZERO
    win_rate_pct: Decimal = ZERO
    rtp_pct: Decimal = ZERO
    house_edge_pct: Decimal = ZERO


class RafflePerformance(_Value):
    total: int = 0
    open: int = 0
    finished: int = 0
    tickets_sold: int = 0


class ProgramCost(_Value):
    referral_count: int = 0
    referral_cost: Decimal = ZERO
    affiliate_sale_count: int = 0
    affiliate_cost: Decimal = ZERO
    total_program_cost: Decimal = ZERO
    cost_pct_of_revenue: Decimal = ZERO


class EngagementMetrics(_Value):
    total_users: int = 0
    users_with_deposit: int = 0
    conversion_rate_pct: Decimal = ZERO
    average_deposit: Decimal = ZERO
    average_spend_per_user: Decimal = ZERO


class HealthAlerts(_Value):
    insufficient_cash: bool = False
    bonus_ratio_high: bool = False
    rtp_low: bool = False

    def active(self) -> List[str]:
        """Names of raised alerts, in declaration order."""
        return [name for name, raised in self.model_dump().items() if raised]

    @property
    def raised(self) -> bool:
        return bool(self.active())


class DataQuality(_Value):
    """
    Everything that makes a snapshot less than a complete, clean read.
    """

    truncated: bool = False
    truncated_sources: Tuple[str, ...] = ()
    orphan_transactions: int = 0
    negative_balance_wallets: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return bool(
            self.truncated
            or self.orphan_transactions
            or self.negative_balance_wallets
            or self.warnings
        )


class FinancialSnapshot(_Value):
    computed_at: datetime
    date_range: DateRange = Field(default_factory=DateRange)
    wallets: WalletComposition = Field(default_factory=WalletComposition)
    cash: CashReserve = Field(default_factory=CashReserve)
    revenue: RevenueMargin = Field(default_factory=RevenueMargin)
    scratch: ScratchPerformance = Field(default_factory=ScratchPerformance)
    raffles: RafflePerformance = Field(default_factory=RafflePerformance)
    programs: ProgramCost = Field(default_factory=ProgramCost)
    engagement: EngagementMetrics = Field(default_factory=EngagementMetrics)
    alerts: HealthAlerts = Field(default_factory=HealthAlerts)
    data_quality: DataQuality = Field(default_factory=DataQuality)

    @property
    def range_label(self) -> str:
        return self.date_range.label

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict; Decimals become strings so no precision is lost."""
        payload = self.model_dump(mode="json")
        payload["range_label"] = self.range_label
        payload["degraded"] = self.data_quality.degraded
        payload["active_alerts"] = self.alerts.active()
        return payload


__all__ = [
    "WalletComposition",
    "CashReserve",
    "ProductLineResult",
    "RevenueMargin",
    "ScratchPerformance",
    "RafflePerformance",
    "ProgramCost",
    "EngagementMetrics",
    "HealthAlerts",
    "DataQuality",
    "FinancialSnapshot",
]
