"""
Cash reserve reconciliation.

Real cash is what actually came in (paid deposits) minus what actually went
out (approved or paid withdrawals). What the operator may extract is the real
cash left after covering every user's principal, which users can withdraw on
demand. A negative figure is a business-risk signal, surfaced as an alert.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from recon_engine.domain.models import ZERO, DepositRecord, WithdrawalRecord
from recon_engine.domain.snapshot import CashReserve


def reconcile_cash(
    deposits: Iterable[DepositRecord],
    withdrawals: Iterable[WithdrawalRecord],
    committed_principal: Decimal,
    admin_withdrawals: Decimal = ZERO,
) -> CashReserve:
    """
    Compare real cash against the principal owed to users.

    Only `paid` deposits and `approved`/`paid` withdrawals count; every other
    status is ignored.
    """
    total_deposits = ZERO
    deposit_count = 0
    for deposit in deposits:
        if deposit.is_paid:
            total_deposits += deposit.amount
            deposit_count += 1

    total_withdrawals = sum((w.amount for w in withdrawals if w.is_settled), ZERO)
    admin_withdrawals = Decimal(admin_withdrawals)
    committed_principal = Decimal(committed_principal)

    real_cash = total_deposits - total_withdrawals - admin_withdrawals
    return CashReserve(
        total_deposits=total_deposits,
        deposit_count=deposit_count,
        total_user_withdrawals=total_withdrawals,
        total_admin_withdrawals=admin_withdrawals,
        real_cash=real_cash,
        committed_principal=committed_principal,
        available_to_operator=real_cash - committed_principal,
    )


__all__ = ["reconcile_cash"]
