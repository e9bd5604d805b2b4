"""
Logging setup shared by the CLI, the orchestrator and the snapshot scheduler.

Two output shapes are available on the root logger:

* console: one pipe-separated line per record, for interactive `recon compute`
* json: one object per line, for `recon watch` running under a supervisor

Structured fields are passed with `extra=` and land as top-level keys of the
JSON object. Money fields are Decimals and are written as strings so no
precision is lost on the way to the log sink.

Usage:
    from recon_engine.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=True)
    log = get_logger(__name__)
    log.info("[SNAPSHOT COMPLETE]", extra={"range": "30d", "wallets": 1000})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}

# Pool maintenance chatter stays hidden unless the run is at DEBUG.
_QUIET_LOGGERS = ("psycopg", "psycopg.pool")


def _json_formatter(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    for key, value in record.__dict__.items():
        if key not in _STANDARD_ATTRS and not key.startswith("_"):
            payload[key] = value
    # Older call sites nest their fields under a single `extra` attribute.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Install a single stream handler on the root logger.

    Parameters
    ----------
    level : str
        Level name applied to the root logger and its handler.
    json_logs : bool
        Emit one JSON object per record instead of the console line format.
    force : bool
        Replace handlers installed earlier. When False and the root logger is
        already configured, the call does nothing.
    """
    root = logging.getLogger()
    if not force and root.handlers:
        return

    level = level.upper()
    quiet_level = level if level == "DEBUG" else "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": level,
                }
            },
            "loggers": {name: {"level": quiet_level} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger; the root logger when `name` is None."""
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
