from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from recon_engine.domain.models import DepositRecord, WithdrawalRecord
from recon_engine.domain.snapshot import ScratchPerformance, WalletComposition
from recon_engine.engine.alerts import evaluate_alerts
from recon_engine.engine.cash import reconcile_cash

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


def deposit(amount: str, status: str = "paid") -> DepositRecord:
    return DepositRecord(amount=Decimal(amount), user_id="u1", status=status, created_at=T0)


def withdrawal(amount: str, status: str = "paid") -> WithdrawalRecord:
    return WithdrawalRecord(amount=Decimal(amount), status=status, created_at=T0)


def test_principal_above_real_cash_is_negative_and_alerts() -> None:
    cash = reconcile_cash([deposit("1000")], [withdrawal("200")], committed_principal=Decimal("900"))

    assert cash.real_cash == Decimal("800")
    assert cash.available_to_operator == Decimal("-100")
    alerts = evaluate_alerts(cash, WalletComposition(), ScratchPerformance())
    assert alerts.insufficient_cash is True
    assert alerts.active() == ["insufficient_cash"]


def test_empty_inputs_reconcile_to_zero() -> None:
    cash = reconcile_cash([], [], committed_principal=Decimal("0"))

    assert cash.total_deposits == Decimal("0")
    assert cash.deposit_count == 0
    assert cash.real_cash == Decimal("0")
    assert cash.available_to_operator == Decimal("0")


def test_only_paid_deposits_and_settled_withdrawals_count() -> None:
    deposits = [deposit("100"), deposit("999", "pending"), deposit("50", "expired"), deposit("25")]
    withdrawals = [
        withdrawal("10", "approved"),
        withdrawal("15", "paid"),
        withdrawal("500", "pending"),
        withdrawal("70", "rejected"),
    ]

    cash = reconcile_cash(deposits, withdrawals, committed_principal=Decimal("60"))

    assert cash.total_deposits == Decimal("125")
    assert cash.deposit_count == 2
    assert cash.total_user_withdrawals == Decimal("25")
    assert cash.real_cash == Decimal("100")
    assert cash.available_to_operator == Decimal("40")


def test_admin_withdrawals_reduce_real_cash() -> None:
    cash = reconcile_cash(
        [deposit("300")], [], committed_principal=Decimal("100"), admin_withdrawals=Decimal("50")
    )

    assert cash.total_admin_withdrawals == Decimal("50")
    assert cash.real_cash == Decimal("250")
    assert cash.available_to_operator == Decimal("150")
