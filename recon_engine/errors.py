"""
Exception hierarchy for the reconciliation engine.

Every error raised on purpose by the engine, the stores or the scheduler
derives from ReconciliationError so callers can catch one type at the seam.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Sequence


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class StoreUnavailableError(ReconciliationError):
    """The transaction store could not be reached or a query failed."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class RecordValidationError(ReconciliationError):
    """A source row is missing a required field or carries an invalid value."""

    def __init__(self, entity: str, row: Any, detail: str) -> None:
        super().__init__(f"Invalid {entity} record: {detail}")
        self.entity = entity
        self.row = row
        self.detail = detail


class TruncatedInputError(ReconciliationError):
    """A source hit the configured row cap under the strict truncation policy."""

    def __init__(self, sources: Sequence[str], max_rows: int) -> None:
        names = ", ".join(sources)
        super().__init__(f"Row cap of {max_rows} reached for: {names}")
        self.sources = tuple(sources)
        self.max_rows = max_rows


class InsufficientPrincipalError(ReconciliationError):
    """A withdrawal asks for more than the wallet's attributed principal."""

    def __init__(self, wallet_id: str, requested: Decimal, available: Decimal) -> None:
        super().__init__(
            f"Wallet {wallet_id}: requested {requested} exceeds withdrawable principal {available}"
        )
        self.wallet_id = wallet_id
        self.requested = requested
        self.available = available


__all__ = [
    "ReconciliationError",
    "StoreUnavailableError",
    "RecordValidationError",
    "TruncatedInputError",
    "InsufficientPrincipalError",
]
