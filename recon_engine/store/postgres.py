"""
PostgreSQL transaction store.

Reads the platform tables with named (server-side) cursors and `fetchmany`
paging, so full tables stream through without a row cap. An optional
`max_rows` cap reads one row past the cap to detect overflow and flags the
source as truncated instead of returning a silently partial result.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator, List, Optional

import psycopg
from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from recon_engine.config import get_settings
from recon_engine.domain.models import (
    AffiliateSaleRecord,
    DateRange,
    DepositRecord,
    GameplayRecord,
    RaffleStatusCounts,
    ReferralRecord,
    TransactionRecord,
    Wallet,
    WithdrawalRecord,
)
from recon_engine.errors import StoreUnavailableError
from recon_engine.infrastructure.db_factory import (
    apply_statement_timeout,
    get_sync_connection,
    get_sync_pool,
)
from recon_engine.store.base import Fetched, parse_rows
from recon_engine.utils.logging import get_logger

log = get_logger(__name__)


def _range_clause(column: str) -> str:
    return (
        f"(%(start)s::timestamptz IS NULL OR {column} >= %(start)s::timestamptz) "
        f"AND (%(end)s::timestamptz IS NULL OR {column} <= %(end)s::timestamptz)"
    )


WALLETS_SQL = """
SELECT id::text AS id, user_id::text AS user_id, balance
FROM public.wallets
ORDER BY id
"""

TRANSACTIONS_SQL = f"""
SELECT id::text AS id, wallet_id::text AS wallet_id, amount, source_type,
       type::text AS kind, created_at AS occurred_at
FROM public.wallet_transactions
WHERE {_range_clause("created_at")}
ORDER BY created_at, id
"""

DEPOSITS_SQL = f"""
SELECT user_id::text AS user_id, amount, status::text AS status, created_at
FROM public.pix_deposits
WHERE {_range_clause("created_at")}
ORDER BY created_at, id
"""

WITHDRAWALS_SQL = f"""
SELECT user_id::text AS user_id, amount, status::text AS status, created_at
FROM public.user_withdrawals
WHERE {_range_clause("created_at")}
ORDER BY created_at, id
"""

GAMEPLAY_SQL = f"""
SELECT * FROM (
    SELECT 'scratch_card' AS product_line, c.price, sc.prize_won,
           sc.is_revealed AS revealed, sc.created_at, sc.user_id::text AS user_id,
           sc.id::text AS row_id
    FROM public.scratch_chances sc
    JOIN public.scratch_cards c ON c.id = sc.scratch_card_id
    WHERE {_range_clause("sc.created_at")}
    UNION ALL
    SELECT 'raffle' AS product_line, r.price, NULL::numeric AS prize_won,
           TRUE AS revealed, t.purchased_at AS created_at, t.user_id::text AS user_id,
           t.id::text AS row_id
    FROM public.raffle_tickets t
    JOIN public.raffles r ON r.id = t.raffle_id
    WHERE {_range_clause("t.purchased_at")}
) plays
ORDER BY created_at, row_id
"""

REFERRALS_SQL = f"""
SELECT referrer_id::text AS referrer_id, bonus_awarded, created_at
FROM public.referrals
WHERE {_range_clause("created_at")}
ORDER BY created_at, id
"""

AFFILIATE_SALES_SQL = f"""
SELECT affiliate_id::text AS affiliate_id, commission_amount,
       commission_status::text AS commission_status, created_at
FROM public.affiliate_sales
WHERE {_range_clause("created_at")}
ORDER BY created_at, id
"""

USERS_SQL = "SELECT COUNT(*) AS total FROM public.profiles"

RAFFLES_SQL = """
SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE status = 'open') AS open
FROM public.raffles
"""


def _batched_fetch(cursor: psycopg.Cursor, batch_size: int) -> Iterator[list]:
    """
    Yield batches from a cursor using fetchmany.
    """
    while True:
        batch = cursor.fetchmany(batch_size)
        if not batch:
            break
        yield batch


def _params(date_range: DateRange) -> Dict[str, Any]:
    return {"start": date_range.start, "end": date_range.end}


class PostgresTransactionStore:
    """
    TransactionStore backed by the platform's PostgreSQL schema.

    Uses the shared pool from db_factory unless `dsn_override` is given, in
    which case each read opens a dedicated (retrying) connection.
    """

    name: str = "postgres"

    def __init__(
        self,
        page_size: Optional[int] = None,
        max_rows: Optional[int] = None,
        dsn_override: Optional[str] = None,
        pool: Optional[ConnectionPool] = None,
    ) -> None:
        settings = get_settings()
        self.page_size = page_size or settings.page_size
        self.max_rows = max_rows if max_rows is not None else settings.max_rows
        self.statement_timeout_ms = settings.db_statement_timeout_ms
        self._dsn_override = dsn_override
        self._pool_instance = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool_instance is None:
            self._pool_instance = get_sync_pool()
        return self._pool_instance

    @contextmanager
    def _connection(self) -> Generator[Connection, None, None]:
        if self._dsn_override:
            conn = get_sync_connection(self._dsn_override)
            try:
                yield conn
            finally:
                conn.close()
        else:
            with self._get_pool().connection() as conn:
                yield conn

    def _read(self, source: str, sql: str, params: Dict[str, Any]) -> Fetched[Dict[str, Any]]:
        """
        Stream one query through a named cursor, page by page.
        """
        rows: List[Dict[str, Any]] = []
        truncated = False
        cap = self.max_rows
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    apply_statement_timeout(cur, self.statement_timeout_ms)
                with conn.cursor(name=f"recon_{source}", row_factory=dict_row) as cur:
                    cur.execute(sql, params)
                    for batch in _batched_fetch(cur, self.page_size):
                        rows.extend(batch)
                        if cap is not None and len(rows) > cap:
                            truncated = True
                            del rows[cap:]
                            break
        except psycopg.Error as exc:
            log.error(
                f"[STORE FAILED] {source}",
                extra={"source": source, "error": str(exc)},
            )
            raise StoreUnavailableError(f"Failed to read {source}: {exc}", source=source) from exc

        log.debug(
            f"[STORE READ] {source}",
            extra={"source": source, "rows": len(rows), "truncated": truncated},
        )
        return Fetched(source=source, rows=rows, truncated=truncated)

    def _scalar_row(self, source: str, sql: str) -> Dict[str, Any]:
        try:
            with self._connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(sql)
                    return cur.fetchone() or {}
        except psycopg.Error as exc:
            raise StoreUnavailableError(f"Failed to read {source}: {exc}", source=source) from exc

    def _typed(self, fetched: Fetched[Dict[str, Any]], model: type, entity: str) -> Fetched[Any]:
        return Fetched(
            source=fetched.source,
            rows=parse_rows(model, entity, fetched.rows),
            truncated=fetched.truncated,
        )

    def fetch_wallets(self) -> Fetched[Wallet]:
        return self._typed(self._read("wallets", WALLETS_SQL, {}), Wallet, "wallet")

    def fetch_transactions(self, date_range: DateRange) -> Fetched[TransactionRecord]:
        raw = self._read("transactions", TRANSACTIONS_SQL, _params(date_range))
        return self._typed(raw, TransactionRecord, "transaction")

    def fetch_deposits(self, date_range: DateRange) -> Fetched[DepositRecord]:
        raw = self._read("deposits", DEPOSITS_SQL, _params(date_range))
        return self._typed(raw, DepositRecord, "deposit")

    def fetch_withdrawals(self, date_range: DateRange) -> Fetched[WithdrawalRecord]:
        raw = self._read("withdrawals", WITHDRAWALS_SQL, _params(date_range))
        return self._typed(raw, WithdrawalRecord, "withdrawal")

    def fetch_gameplay(self, date_range: DateRange) -> Fetched[GameplayRecord]:
        raw = self._read("gameplay", GAMEPLAY_SQL, _params(date_range))
        return self._typed(raw, GameplayRecord, "gameplay")

    def fetch_referrals(self, date_range: DateRange) -> Fetched[ReferralRecord]:
        raw = self._read("referrals", REFERRALS_SQL, _params(date_range))
        return self._typed(raw, ReferralRecord, "referral")

    def fetch_affiliate_sales(self, date_range: DateRange) -> Fetched[AffiliateSaleRecord]:
        raw = self._read("affiliate_sales", AFFILIATE_SALES_SQL, _params(date_range))
        return self._typed(raw, AffiliateSaleRecord, "affiliate_sale")

    def count_users(self) -> int:
        return int(self._scalar_row("profiles", USERS_SQL).get("total") or 0)

    def raffle_status_counts(self) -> RaffleStatusCounts:
        row = self._scalar_row("raffles", RAFFLES_SQL)
        return RaffleStatusCounts(total=int(row.get("total") or 0), open=int(row.get("open") or 0))


__all__ = ["PostgresTransactionStore"]
