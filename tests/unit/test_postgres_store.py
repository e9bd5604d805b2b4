from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import psycopg
import pytest

from recon_engine.domain.models import DateRange
from recon_engine.errors import RecordValidationError, StoreUnavailableError
from recon_engine.store.postgres import PostgresTransactionStore

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)
PAGE_SIZE = 2


def _tx_rows(count: int) -> list[dict[str, Any]]:
    return [
        {
            "id": f"t{i}",
            "wallet_id": "w1",
            "amount": Decimal("1.00"),
            "source_type": "deposit",
            "kind": "deposit",
            "occurred_at": T0,
        }
        for i in range(count)
    ]


class _FakeCursor:
    def __init__(self, conn: _FakeConnection, name: str | None) -> None:
        self._conn = conn
        self.name = name
        self._rows: list[dict[str, Any]] = []

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> None:
        self._conn.executed.append((self.name, sql, params))
        if self._conn.fail_with is not None and self.name is not None:
            raise self._conn.fail_with
        self._rows = list(self._conn.rows)

    def fetchmany(self, size: int) -> list[dict[str, Any]]:
        self._conn.fetchmany_sizes.append(size)
        batch, self._rows = self._rows[:size], self._rows[size:]
        return batch

    def fetchone(self) -> dict[str, Any] | None:
        return self._conn.scalar

    def __enter__(self) -> _FakeCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class _FakeConnection:
    def __init__(self, rows: list[dict[str, Any]], scalar: dict[str, Any] | None = None) -> None:
        self.rows = rows
        self.scalar = scalar
        self.fail_with: Exception | None = None
        self.executed: list[tuple[str | None, str, Any]] = []
        self.fetchmany_sizes: list[int] = []

    def cursor(self, name: str | None = None, row_factory: Any = None) -> _FakeCursor:
        del row_factory
        return _FakeCursor(self, name)


class _FakePool:
    def __init__(self, conn: _FakeConnection) -> None:
        self.conn = conn
        self.checkouts = 0

    @contextmanager
    def connection(self):
        self.checkouts += 1
        yield self.conn


def _store(conn: _FakeConnection, max_rows: int | None = None) -> PostgresTransactionStore:
    return PostgresTransactionStore(page_size=PAGE_SIZE, max_rows=max_rows, pool=_FakePool(conn))  # type: ignore[arg-type]


def test_reads_all_pages_through_named_cursor() -> None:
    conn = _FakeConnection(_tx_rows(5))

    fetched = _store(conn).fetch_transactions(DateRange.all_time())

    assert len(fetched) == 5
    assert fetched.truncated is False
    assert fetched.rows[0].amount == Decimal("1.00")
    assert all(size == PAGE_SIZE for size in conn.fetchmany_sizes)
    named = [entry for entry in conn.executed if entry[0] is not None]
    assert named[0][0] == "recon_transactions"
    assert named[0][2] == {"start": None, "end": None}


def test_statement_timeout_is_transaction_local() -> None:
    conn = _FakeConnection(_tx_rows(1))

    _store(conn).fetch_transactions(DateRange.all_time())

    assert conn.executed[0][1].startswith("SET LOCAL statement_timeout")
    assert conn.executed[1][0] == "recon_transactions"


def test_row_cap_truncates_and_flags() -> None:
    conn = _FakeConnection(_tx_rows(7))

    fetched = _store(conn, max_rows=3).fetch_transactions(DateRange.all_time())

    assert len(fetched) == 3
    assert fetched.truncated is True


def test_exactly_cap_rows_is_not_truncated() -> None:
    conn = _FakeConnection(_tx_rows(4))

    fetched = _store(conn, max_rows=4).fetch_transactions(DateRange.all_time())

    assert len(fetched) == 4
    assert fetched.truncated is False


def test_date_range_is_passed_as_query_parameters() -> None:
    conn = _FakeConnection([])
    window = DateRange(start=T0, end=T0.replace(day=7))

    _store(conn).fetch_deposits(window)

    named = [entry for entry in conn.executed if entry[0] == "recon_deposits"]
    assert named[0][2] == {"start": window.start, "end": window.end}
    assert "pix_deposits" in named[0][1]


def test_driver_error_becomes_store_unavailable() -> None:
    conn = _FakeConnection([])
    conn.fail_with = psycopg.OperationalError("server closed the connection")

    with pytest.raises(StoreUnavailableError) as excinfo:
        _store(conn).fetch_wallets()

    assert excinfo.value.source == "wallets"


def test_malformed_row_raises_validation_error() -> None:
    conn = _FakeConnection([{"id": "w1", "user_id": "u1", "balance": None}])

    with pytest.raises(RecordValidationError):
        _store(conn).fetch_wallets()


def test_scalar_reads_for_users_and_raffles() -> None:
    conn = _FakeConnection([], scalar={"total": 12, "open": 5})
    store = _store(conn)

    assert store.count_users() == 12
    counts = store.raffle_status_counts()
    assert (counts.total, counts.open, counts.finished) == (12, 5, 7)
