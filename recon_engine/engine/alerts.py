"""
Health alerts raised from the reconciled figures.

Thresholds are business policy, kept as named constants and overridable
through AlertThresholds (or the ALERT_* settings) without touching the checks.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from recon_engine.config import BONUS_RATIO_ALERT_PCT, RTP_ALERT_PCT
from recon_engine.domain.models import ZERO
from recon_engine.domain.snapshot import (
    CashReserve,
    HealthAlerts,
    ScratchPerformance,
    WalletComposition,
)


class AlertThresholds(BaseModel):
    bonus_ratio_pct: Decimal = Field(BONUS_RATIO_ALERT_PCT)
    rtp_pct: Decimal = Field(RTP_ALERT_PCT)

    model_config = {"frozen": True}


def evaluate_alerts(
    cash: CashReserve,
    wallets: WalletComposition,
    scratch: ScratchPerformance,
    thresholds: AlertThresholds | None = None,
) -> HealthAlerts:
    thresholds = thresholds or AlertThresholds()
    return HealthAlerts(
        insufficient_cash=cash.available_to_operator < ZERO,
        bonus_ratio_high=wallets.bonus_ratio_pct > thresholds.bonus_ratio_pct,
        # Idle periods (no revealed plays) never raise rtp_low.
        rtp_low=scratch.plays > 0 and scratch.rtp_pct < thresholds.rtp_pct,
    )


__all__ = [
    "BONUS_RATIO_ALERT_PCT",
    "RTP_ALERT_PCT",
    "AlertThresholds",
    "evaluate_alerts",
]
