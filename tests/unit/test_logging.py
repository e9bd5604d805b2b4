from __future__ import annotations

import json
import logging
from decimal import Decimal

from recon_engine.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_WALLETS = 10
EXPECTED_PAGE_SIZE = 1000


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.wallets = EXPECTED_WALLETS
    record.range = "30d"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["wallets"] == EXPECTED_WALLETS
    assert payload["range"] == "30d"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"page_size": EXPECTED_PAGE_SIZE}

    payload = json.loads(_json_formatter(record))

    assert payload["page_size"] == EXPECTED_PAGE_SIZE


def test_json_formatter_stringifies_decimals() -> None:
    record = _record()
    record.available_to_operator = Decimal("-100.00")

    payload = json.loads(_json_formatter(record))

    assert payload["available_to_operator"] == "-100.00"


def test_configure_logging_json_installs_json_formatter() -> None:
    root = logging.getLogger()
    configure_logging(level="DEBUG", json_logs=True)
    try:
        assert root.level == logging.DEBUG
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
    finally:
        root.handlers.clear()
        root.setLevel(logging.WARNING)


def test_json_formatter_stamps_utc_time() -> None:
    payload = json.loads(_json_formatter(_record()))

    assert payload["ts"].endswith("+00:00")


def test_configure_logging_without_force_keeps_existing_handlers() -> None:
    root = logging.getLogger()
    existing = logging.NullHandler()
    root.handlers[:] = [existing]
    try:
        configure_logging(level="DEBUG", json_logs=True, force=False)
        assert root.handlers == [existing]
    finally:
        root.handlers.clear()
        root.setLevel(logging.WARNING)


def test_configure_logging_quiets_pool_logger_below_debug() -> None:
    root = logging.getLogger()
    configure_logging(level="info")
    try:
        assert root.level == logging.INFO
        assert logging.getLogger("psycopg.pool").level == logging.WARNING
    finally:
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        logging.getLogger("psycopg.pool").setLevel(logging.NOTSET)
        logging.getLogger("psycopg").setLevel(logging.NOTSET)
