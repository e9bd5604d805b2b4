"""Referral and affiliate program cost, absolute and as a share of revenue."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from recon_engine.domain.models import ZERO, AffiliateSaleRecord, ReferralRecord
from recon_engine.domain.snapshot import ProgramCost
from recon_engine.engine.ratios import pct


def aggregate_program_costs(
    referrals: Iterable[ReferralRecord],
    affiliate_sales: Iterable[AffiliateSaleRecord],
    revenue: Decimal,
) -> ProgramCost:
    referral_count = 0
    referral_cost = ZERO
    for referral in referrals:
        referral_count += 1
        referral_cost += referral.bonus_awarded

    sale_count = 0
    affiliate_cost = ZERO
    for sale in affiliate_sales:
        sale_count += 1
        affiliate_cost += sale.commission_amount

    total = referral_cost + affiliate_cost
    return ProgramCost(
        referral_count=referral_count,
        referral_cost=referral_cost,
        affiliate_sale_count=sale_count,
        affiliate_cost=affiliate_cost,
        total_program_cost=total,
        cost_pct_of_revenue=pct(total, revenue),
    )


__all__ = ["aggregate_program_costs"]
