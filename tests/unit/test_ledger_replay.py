from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from recon_engine.domain.models import SourceType, TransactionRecord, Wallet
from recon_engine.engine import ledger
from recon_engine.engine.ledger import (
    LedgerFold,
    attribute_wallets,
    ensure_withdrawable,
    fold_transactions,
    normalize_fold,
    replay_wallet,
)
from recon_engine.errors import InsufficientPrincipalError

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
FUZZ_ITERATIONS = 200
SOURCES = [s.value for s in SourceType] + ["mystery", None]


def tx(amount: str, source: str | None, minutes: int, wallet_id: str = "w1", tx_id: str | None = None):
    return TransactionRecord(
        wallet_id=wallet_id,
        amount=Decimal(amount),
        source_type=source,
        occurred_at=T0 + timedelta(minutes=minutes),
        id=tx_id,
    )


def test_deposit_then_bonus_then_purchase_consumes_bonus_first() -> None:
    txs = [
        tx("100", "deposit", 0),
        tx("20", "referral", 1),
        tx("-20", "purchase", 2),
    ]

    attribution = replay_wallet(Decimal("80"), txs)

    assert (attribution.principal, attribution.bonus, attribution.commission) == (
        Decimal("80"),
        Decimal("0"),
        Decimal("0"),
    )


def test_debit_larger_than_bonus_draws_down_principal() -> None:
    txs = [tx("50", "deposit", 0), tx("10", "admin_bonus", 1), tx("-25", "purchase", 2)]

    attribution = replay_wallet(Decimal("35"), txs)

    assert attribution.bonus == Decimal("0")
    assert attribution.principal == Decimal("35")


def test_commission_is_tracked_separately_and_never_consumed_by_debits() -> None:
    txs = [
        tx("30", "deposit", 0),
        tx("12", "affiliate_commission", 1),
        tx("-10", "purchase", 2),
    ]

    attribution = replay_wallet(Decimal("32"), txs)

    assert attribution.commission == Decimal("12")
    assert attribution.principal == Decimal("20")
    assert attribution.bonus == Decimal("0")


def test_residual_after_bonus_used_closes_into_principal() -> None:
    txs = [tx("50", "deposit", 0), tx("80", "referral", 1), tx("-60", "bonus_used", 2)]

    attribution = replay_wallet(Decimal("100"), txs)

    assert (attribution.principal, attribution.bonus, attribution.commission) == (
        Decimal("80"),
        Decimal("20"),
        Decimal("0"),
    )


def test_bonus_used_only_consumes_bonus_and_drops_excess() -> None:
    fold = fold_transactions([tx("40", "deposit", 0), tx("5", "referral", 1), tx("-9", "bonus_used", 2)])

    assert fold == LedgerFold(principal=Decimal("40"), bonus=Decimal("0"), commission=Decimal("0"))


def test_unknown_source_tag_is_treated_as_principal_credit() -> None:
    record = tx("15", "loyalty_points", 0)

    assert record.source_type is SourceType.OTHER
    assert replay_wallet(Decimal("15"), [record]).principal == Decimal("15")


def test_wallet_without_transactions_is_all_principal() -> None:
    attribution = replay_wallet(Wallet(id="w9", user_id="u9", balance=Decimal("42.50")))

    assert attribution.wallet_id == "w9"
    assert attribution.principal == Decimal("42.50")
    assert attribution.bonus == attribution.commission == Decimal("0")


def test_zero_balance_wallet_with_history_attributes_nothing() -> None:
    txs = [tx("10", "referral", 0), tx("5", "affiliate_commission", 1)]

    attribution = replay_wallet(Decimal("0"), txs)

    assert attribution.principal == attribution.bonus == attribution.commission == Decimal("0")


def test_replay_is_insensitive_to_input_order() -> None:
    txs = [
        tx("100", "deposit", 0, tx_id="a"),
        tx("20", "referral", 1, tx_id="b"),
        tx("-20", "purchase", 2, tx_id="c"),
        tx("-5", "purchase", 2, tx_id="d"),
        tx("7", "affiliate_commission", 3, tx_id="e"),
    ]
    expected = replay_wallet(Decimal("102"), txs)
    rng = random.Random(3)

    for _ in range(20):
        shuffled = txs[:]
        rng.shuffle(shuffled)
        assert replay_wallet(Decimal("102"), shuffled) == expected


def test_fold_is_order_sensitive_before_sorting() -> None:
    credit_first = [tx("10", "referral", 0), tx("-10", "purchase", 1)]
    debit_first = list(reversed(credit_first))

    assert fold_transactions(credit_first).bonus == Decimal("0")
    assert fold_transactions(debit_first).bonus == Decimal("10")


def test_normalize_caps_bonus_then_commission_by_balance() -> None:
    fold = LedgerFold(principal=Decimal("0"), bonus=Decimal("30"), commission=Decimal("30"))

    attribution = normalize_fold(fold, Decimal("40"))

    assert attribution.bonus == Decimal("30")
    assert attribution.commission == Decimal("10")
    assert attribution.principal == Decimal("0")


def test_negative_balance_is_attributed_as_zero() -> None:
    attribution = normalize_fold(LedgerFold(principal=Decimal("5")), Decimal("-12"))

    assert attribution.balance == Decimal("0")
    assert attribution.principal == Decimal("0")


def test_random_histories_always_close_against_balance() -> None:
    rng = random.Random(20240101)

    for _ in range(FUZZ_ITERATIONS):
        txs = [
            tx(
                str(Decimal(rng.randint(-5_000, 5_000)) / 100),
                rng.choice(SOURCES),
                rng.randint(0, 50),
            )
            for _ in range(rng.randint(0, 15))
        ]
        balance = Decimal(rng.randint(-1_000, 20_000)) / 100

        attribution = replay_wallet(balance, txs)

        assert min(attribution.principal, attribution.bonus, attribution.commission) >= 0
        assert attribution.principal + attribution.bonus + attribution.commission == max(
            balance, Decimal("0")
        )


def test_attribute_wallets_counts_orphans_and_negative_balances() -> None:
    wallets = [
        Wallet(id="w1", user_id="u1", balance=Decimal("80")),
        Wallet(id="w2", user_id="u2", balance=Decimal("-3")),
    ]
    txs = [
        tx("100", "deposit", 0, wallet_id="w1"),
        tx("20", "referral", 1, wallet_id="w1"),
        tx("-20", "purchase", 2, wallet_id="w1"),
        tx("9", "deposit", 0, wallet_id="ghost"),
    ]

    replay = attribute_wallets(wallets, txs)

    assert replay.orphan_transactions == 1
    assert replay.negative_balance_wallets == ("w2",)
    assert replay.principal == Decimal("80")
    composition = replay.composition()
    assert composition.wallet_count == 2
    assert composition.bonus_ratio_pct == Decimal("0")


def test_attribute_wallets_fans_out_over_spawn_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: dict = {}

    class _FakeAsyncResult:
        def __init__(self, results):
            self._results = results

        def get(self, timeout: int):
            calls["timeout"] = timeout
            return self._results

    class _FakePool:
        def map_async(self, worker, work_items):
            calls["items"] = len(work_items)
            return _FakeAsyncResult([worker(item) for item in work_items])

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb) -> bool:
            return False

    class _FakeContext:
        def Pool(self, processes: int | None = None) -> _FakePool:  # noqa: N802
            calls["processes"] = processes
            return _FakePool()

    def _fake_get_context(method: str) -> _FakeContext:
        calls["method"] = method
        return _FakeContext()

    monkeypatch.setattr(ledger.mp, "get_context", _fake_get_context)
    wallets = [Wallet(id=f"w{i}", user_id=f"u{i}", balance=Decimal(i)) for i in range(1, 4)]

    parallel = attribute_wallets(wallets, [], processes=2)

    assert calls["method"] == "spawn"
    assert calls["processes"] == 2
    assert calls["items"] == 3
    assert calls["timeout"] == ledger.POOL_TIMEOUT_SECONDS
    assert parallel == attribute_wallets(wallets, [], processes=1)


def test_ensure_withdrawable_allows_up_to_principal() -> None:
    wallet = Wallet(id="w1", user_id="u1", balance=Decimal("80"))
    txs = [tx("60", "deposit", 0), tx("20", "referral", 1)]

    assert ensure_withdrawable(wallet, txs, Decimal("60")) == Decimal("60")


def test_ensure_withdrawable_rejects_bonus_money() -> None:
    wallet = Wallet(id="w1", user_id="u1", balance=Decimal("80"))
    txs = [tx("60", "deposit", 0), tx("20", "referral", 1)]

    with pytest.raises(InsufficientPrincipalError) as excinfo:
        ensure_withdrawable(wallet, txs, Decimal("70"))

    assert excinfo.value.available == Decimal("60")
    assert excinfo.value.wallet_id == "w1"


def test_ensure_withdrawable_rejects_non_positive_amounts() -> None:
    wallet = Wallet(id="w1", user_id="u1", balance=Decimal("10"))

    with pytest.raises(ValueError):
        ensure_withdrawable(wallet, [], Decimal("0"))
