"""
Pytest configuration for the wallet reconciliation engine.

Provides fixtures for:
- A small hand-checked in-memory platform dataset
- Database connection management
- Test data seeding
- Settings override for integration tests
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import psycopg
import pytest

from recon_engine.config import Settings
from recon_engine.store.memory import InMemoryTransactionStore

# Fixed "now" for every unit test that needs one.
ANCHOR = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def at(days_ago: float, hour: int = 0) -> datetime:
    """Timestamp `days_ago` days before ANCHOR, shifted by `hour` hours."""
    return ANCHOR - timedelta(days=days_ago) + timedelta(hours=hour)


@pytest.fixture
def anchor() -> datetime:
    return ANCHOR


@pytest.fixture
def platform_data() -> dict:
    """
    Two users, hand-checked figures:

    - u1 deposits 100, receives a 20 referral bonus, buys a 10 scratch card
      (bonus pays) and wins 5: balance 115 = principal 105 + bonus 10.
    - u2 deposits 50, earns 8 affiliate commission, buys a 20 raffle ticket
      and withdraws 10 (paid): balance 28 = principal 20 + commission 8.
    """
    return {
        "wallets": [
            {"id": "w1", "user_id": "u1", "balance": "115.00"},
            {"id": "w2", "user_id": "u2", "balance": "28.00"},
        ],
        "transactions": [
            {"id": "t1", "wallet_id": "w1", "amount": "100.00", "source_type": "deposit", "occurred_at": at(10)},
            {"id": "t2", "wallet_id": "w1", "amount": "20.00", "source_type": "referral", "occurred_at": at(9)},
            {"id": "t3", "wallet_id": "w1", "amount": "-10.00", "source_type": "purchase", "occurred_at": at(8)},
            {"id": "t4", "wallet_id": "w1", "amount": "5.00", "source_type": "prize", "occurred_at": at(8, 1)},
            {"id": "t5", "wallet_id": "w2", "amount": "50.00", "source_type": "deposit", "occurred_at": at(40)},
            {"id": "t6", "wallet_id": "w2", "amount": "8.00", "source_type": "affiliate_commission", "occurred_at": at(3)},
            {"id": "t7", "wallet_id": "w2", "amount": "-20.00", "source_type": "purchase", "occurred_at": at(2)},
            {"id": "t8", "wallet_id": "w2", "amount": "-10.00", "source_type": "withdrawal", "occurred_at": at(1)},
        ],
        "deposits": [
            {"user_id": "u1", "amount": "100.00", "status": "paid", "created_at": at(10)},
            {"user_id": "u2", "amount": "50.00", "status": "paid", "created_at": at(40)},
            {"user_id": "u2", "amount": "500.00", "status": "pending", "created_at": at(5)},
        ],
        "withdrawals": [
            {"user_id": "u2", "amount": "10.00", "status": "paid", "created_at": at(1)},
            {"user_id": "u1", "amount": "30.00", "status": "rejected", "created_at": at(1)},
        ],
        "gameplay": [
            {"product_line": "scratch_card", "price": "10.00", "prize_won": "5.00", "revealed": True, "created_at": at(8), "user_id": "u1"},
            {"product_line": "raffle", "price": "20.00", "created_at": at(2), "user_id": "u2"},
        ],
        "referrals": [
            {"referrer_id": "u1", "bonus_awarded": "20.00", "created_at": at(9)},
        ],
        "affiliate_sales": [
            {"affiliate_id": "u2", "commission_amount": "8.00", "commission_status": "approved", "created_at": at(3)},
        ],
        "total_users": 4,
        "raffle_counts": {"total": 3, "open": 1},
    }


@pytest.fixture
def memory_store(platform_data: dict) -> InMemoryTransactionStore:
    return InMemoryTransactionStore.from_dict(platform_data)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "raffle_platform"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the platform schema exists by running db/init.sql (idempotent).
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    db_connection.commit()
    return True


@pytest.fixture(scope="function")
def seeded_platform(
    db_schema_initialized: bool,
    test_dsn: str,
) -> dict:
    """
    Load a small deterministic platform into the database.

    Returns the generated tables so tests can compare the store's reads
    against an in-memory store built from the same rows.
    """
    from scripts.generate_data import _copy_into_db, generate_tables

    tables = generate_tables(users=40, days=30, seed=7, anchor=ANCHOR)
    _copy_into_db(test_dsn, tables)
    return tables
