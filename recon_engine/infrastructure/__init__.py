"""
Infrastructure package for the reconciliation engine.

Centralizes database connectivity concerns (DSN, retrying connections, the
shared pool). Keep this layer focused on I/O and resource management,
decoupled from the reconciliation logic.
"""

from recon_engine.infrastructure.db_factory import (
    PoolManager,
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
)

__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
]
