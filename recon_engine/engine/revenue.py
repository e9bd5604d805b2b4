"""
Revenue, prize payout and margin per product line.

Revenue is the sum of prices paid; payout is the sum of prizes over winning
plays unless the caller supplies an explicit payout for the line. Raffle prizes
are physical goods today, so their derived payout is zero, but a cash-prize
raffle line only needs an explicit payout to be reported correctly.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from recon_engine.domain.models import ZERO, GameplayRecord, ProductLine, RaffleStatusCounts
from recon_engine.domain.snapshot import (
    ProductLineResult,
    RafflePerformance,
    RevenueMargin,
    ScratchPerformance,
)
from recon_engine.engine.ratios import HUNDRED, pct


def margin_pct(revenue: Decimal, payout: Decimal) -> Decimal:
    return pct(revenue - payout, revenue)


def summarize_line(
    product_line: ProductLine,
    plays: Iterable[GameplayRecord],
    payout: Optional[Decimal] = None,
) -> ProductLineResult:
    """Revenue, payout and margin for a single product line."""
    sales = 0
    revenue = ZERO
    derived_payout = ZERO
    for play in plays:
        sales += 1
        revenue += play.price
        if play.is_win:
            derived_payout += play.prize_won
    line_payout = derived_payout if payout is None else Decimal(payout)
    return ProductLineResult(
        product_line=product_line,
        sales=sales,
        revenue=revenue,
        payout=line_payout,
        margin_pct=margin_pct(revenue, line_payout),
    )


def _by_line(gameplay: Iterable[GameplayRecord]) -> Dict[ProductLine, List[GameplayRecord]]:
    grouped: Dict[ProductLine, List[GameplayRecord]] = defaultdict(list)
    for play in gameplay:
        grouped[play.product_line].append(play)
    return grouped


def compute_revenue(
    gameplay: Iterable[GameplayRecord],
    payouts: Optional[Mapping[ProductLine, Decimal]] = None,
) -> RevenueMargin:
    """
    Per-line and consolidated revenue/payout/margin.

    `payouts` overrides the derived payout of any line it names. Every
    ProductLine is reported, with zeros when it had no activity.
    """
    payouts = payouts or {}
    grouped = _by_line(gameplay)
    lines = tuple(
        summarize_line(line, grouped.get(line, []), payouts.get(line)) for line in ProductLine
    )
    revenue = sum((r.revenue for r in lines), ZERO)
    payout = sum((r.payout for r in lines), ZERO)
    return RevenueMargin(
        lines=lines,
        revenue=revenue,
        payout=payout,
        margin_pct=margin_pct(revenue, payout),
    )


def scratch_performance(
    gameplay: Iterable[GameplayRecord], revenue: RevenueMargin
) -> ScratchPerformance:
    """
    Play statistics for scratch cards.

    Plays and wins only count revealed cards; RTP uses the line's revenue and
    payout as computed by compute_revenue.
    """
    line = revenue.line(ProductLine.SCRATCH_CARD)
    revealed = [
        p for p in gameplay if p.product_line == ProductLine.SCRATCH_CARD and p.revealed
    ]
    wins = sum(1 for p in revealed if p.is_win)
    rtp = pct(line.payout, line.revenue)
    return ScratchPerformance(
        plays=len(revealed),
        wins=wins,
        revenue=line.revenue,
        payout=line.payout,
        win_rate_pct=pct(wins, len(revealed)),
        rtp_pct=rtp,
        house_edge_pct=HUNDRED - rtp,
    )


def raffle_performance(counts: RaffleStatusCounts, revenue: RevenueMargin) -> RafflePerformance:
    return RafflePerformance(
        total=counts.total,
        open=counts.open,
        finished=counts.finished,
        tickets_sold=revenue.line(ProductLine.RAFFLE).sales,
    )


__all__ = [
    "margin_pct",
    "summarize_line",
    "compute_revenue",
    "scratch_performance",
    "raffle_performance",
]
