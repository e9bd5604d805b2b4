"""
Stores package: read-only sources of typed records for a reconciliation run.

The PostgreSQL store lives in `recon_engine.store.postgres` and is imported
explicitly so the pure engine does not pull in database drivers.
"""

from recon_engine.store.base import (
    Fetched,
    LedgerDataset,
    TransactionStore,
    load_dataset,
    parse_rows,
)
from recon_engine.store.memory import InMemoryTransactionStore

__all__ = [
    "Fetched",
    "InMemoryTransactionStore",
    "LedgerDataset",
    "TransactionStore",
    "load_dataset",
    "parse_rows",
]
