"""
Domain package for the wallet reconciliation engine.

Exports the typed source records, the date-range filter, and the snapshot
value objects. Keep this package focused on data definitions and validation.
"""

from recon_engine.domain.models import (
    AffiliateSaleRecord,
    BalanceAttribution,
    DateRange,
    DepositRecord,
    GameplayRecord,
    ProductLine,
    RaffleStatusCounts,
    ReferralRecord,
    SourceType,
    TransactionRecord,
    Wallet,
    WithdrawalRecord,
)
from recon_engine.domain.snapshot import (
    CashReserve,
    DataQuality,
    EngagementMetrics,
    FinancialSnapshot,
    HealthAlerts,
    ProductLineResult,
    ProgramCost,
    RafflePerformance,
    RevenueMargin,
    ScratchPerformance,
    WalletComposition,
)

__all__ = [
    "AffiliateSaleRecord",
    "BalanceAttribution",
    "DateRange",
    "DepositRecord",
    "GameplayRecord",
    "ProductLine",
    "RaffleStatusCounts",
    "ReferralRecord",
    "SourceType",
    "TransactionRecord",
    "Wallet",
    "WithdrawalRecord",
    "CashReserve",
    "DataQuality",
    "EngagementMetrics",
    "FinancialSnapshot",
    "HealthAlerts",
    "ProductLineResult",
    "ProgramCost",
    "RafflePerformance",
    "RevenueMargin",
    "ScratchPerformance",
    "WalletComposition",
]
