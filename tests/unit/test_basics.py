import ast
import inspect
import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from time import sleep

import pytest

from recon_engine import config
from recon_engine.domain.models import DateRange
from recon_engine.engine import alerts
from recon_engine.engine.ratios import pct, safe_div
from recon_engine.engine.report import compute_snapshot
from recon_engine.store.memory import InMemoryTransactionStore
from recon_engine.utils import profiler
from scripts import generate_data

ANCHOR = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def test_get_settings_defaults():
    settings = config.get_settings()
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_user == "postgres"
    assert settings.db_name == "raffle_platform"
    assert settings.page_size > 0
    assert settings.concurrency > 0
    assert settings.truncation_policy in ("tolerant", "strict")
    assert settings.alert_rtp_pct == Decimal("30")


def test_config_owns_alert_defaults_without_engine_imports():
    tree = ast.parse(inspect.getsource(config))
    imported = [node.module or "" for node in ast.walk(tree) if isinstance(node, ast.ImportFrom)]

    assert not any(module.startswith("recon_engine") for module in imported)
    assert alerts.RTP_ALERT_PCT is config.RTP_ALERT_PCT
    assert alerts.AlertThresholds().bonus_ratio_pct == config.get_settings().alert_bonus_ratio_pct


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    fields = stats.as_log_fields()
    assert fields["profile_label"] == "sleep"
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_ratios_are_zero_on_zero_denominator():
    assert safe_div(Decimal("10"), 0) == Decimal("0")
    assert pct(Decimal("10"), 0) == Decimal("0")
    assert pct(1, 4) == Decimal("25")


def test_date_range_presets_share_anchor():
    week = DateRange.preset("7d", now=ANCHOR)
    today = DateRange.preset("today", now=ANCHOR)

    assert week.end == today.end == ANCHOR
    assert today.start == datetime(2024, 6, 30, tzinfo=timezone.utc)
    assert DateRange.preset("all").is_all_time
    with pytest.raises(ValueError):
        DateRange(start=ANCHOR, end=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_generate_data_is_deterministic():
    first = generate_data.generate_tables(users=25, days=10, seed=123, anchor=ANCHOR)
    second = generate_data.generate_tables(users=25, days=10, seed=123, anchor=ANCHOR)

    assert first == second
    assert len(first["wallets"]) == len(first["profiles"]) == 25


def test_generated_balances_match_transactions():
    tables = generate_data.generate_tables(users=50, days=30, seed=9, anchor=ANCHOR)

    for wallet in tables["wallets"]:
        total = sum(
            (t["amount"] for t in tables["wallet_transactions"] if t["wallet_id"] == wallet["id"]),
            Decimal("0"),
        )
        assert wallet["balance"] == total
        assert wallet["balance"] >= 0


def test_generated_dataset_loads_and_closes(tmp_path: Path):
    tables = generate_data.generate_tables(users=30, days=20, seed=5, anchor=ANCHOR)
    path = tmp_path / "dataset.json"
    generate_data.write_dataset(path, generate_data.to_dataset(tables))

    store = InMemoryTransactionStore.from_json(path)
    snapshot = compute_snapshot(store, computed_at=ANCHOR)

    assert json.loads(path.read_text(encoding="utf-8"))["total_users"] == 30
    assert snapshot.wallets.total == sum(w.balance for w in store.wallets)
    assert snapshot.data_quality.orphan_transactions == 0
