"""
Structured logging utilities for rowstore.

Centralizes logging configuration so the engine and connection adapters log
consistently. Standard library logging with a human-readable formatter by
default, and an optional JSON formatter for structured logs.

Usage:
    from rowstore.utils.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", json_logs=True)
    log = get_logger(__name__)
    log.debug("statement executed", extra={"table": "note", "operation": "update"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

from rowstore.config import get_settings

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as JSON string, promoting `extra` attributes."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key in _STANDARD_ATTRS or key == "extra" or key.startswith("_"):
            continue
        payload[key] = value
    # Older call sites pass a nested dict as extra={"extra": {...}}.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    force: bool = True,
) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : str, optional
        Logging level name (e.g., "DEBUG", "INFO", "WARNING"). Defaults to
        `Settings.log_level` (LOG_LEVEL).
    json_logs : bool, optional
        Whether to emit logs as JSON. If False, uses a concise human formatter.
        Defaults to `Settings.log_json` (LOG_JSON).
    force : bool
        Whether to replace handlers installed by an earlier configuration.
    """
    if not force and logging.getLogger().handlers:
        return
    if level is None or json_logs is None:
        settings = get_settings()
        level = settings.log_level if level is None else level
        json_logs = settings.log_json if json_logs is None else json_logs
    level = level.upper()
    formatter_name = "json" if json_logs else "console"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "level": level,
                }
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
