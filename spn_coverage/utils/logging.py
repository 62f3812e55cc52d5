"""
Logging setup shared by the `spn-coverage` commands.

Log records go to stderr so `run --json` keeps stdout clean for the report.
Fields passed through `extra=` (stage, strategy, skipped counts) become
top-level keys when JSON output is enabled with `LOG_JSON=true`; otherwise a
one-line `time | level | logger | message` format is used.

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.warning("[DATA QUALITY] ...", extra={"skipped": 4})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived via `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _json_formatter(record: logging.LogRecord) -> str:
    """One JSON object per record; `extra=` fields become top-level keys."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in record.__dict__.items():
        if key not in _RESERVED_ATTRS and not key.startswith("_"):
            payload[key] = value
    # `extra={"extra": {...}}` is flattened as well.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """Formatter installed when `LOG_JSON` is enabled."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Install one stderr handler on the root logger.

    Parameters
    ----------
    level : str
        Level name, case-insensitive; the CLI passes `LOG_LEVEL`.
    json_logs : bool
        Use `JsonFormatter` instead of the one-line console format.
    force : bool
        Replace existing root handlers. With False, an already configured
        root logger (e.g. an embedding application's) is left alone.
    """
    if not force and logging.getLogger().handlers:
        return

    formatter_name = "json" if json_logs else "console"
    level = level.upper()

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
                    "stream": "ext://sys.stderr",
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
