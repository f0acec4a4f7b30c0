"""Logging setup for the harvester process."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

__all__ = ["setup_logging", "JsonFormatter", "TextFormatter"]

_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED and not key.startswith("_")}


def _json_payload(record: logging.LogRecord, formatter: logging.Formatter) -> str:
    base = {
        "time": formatter.formatTime(record),
        "level": record.levelname,
        "logger": record.name,
        "msg": record.getMessage(),
    }
    base.update({key: str(value) for key, value in _extra_fields(record).items()})
    if record.exc_info:
        base["exc"] = formatter.formatException(record.exc_info)
    return json.dumps(base, ensure_ascii=False)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, ``extra`` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        return _json_payload(record, self)


class TextFormatter(logging.Formatter):
    """Plain text with ``key=value`` pairs for ``extra`` fields."""

    def __init__(self) -> None:
        super().__init__("[%(asctime)s] %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{key}={value}" for key, value in sorted(extra.items()))
        return line


def setup_logging(level: Optional[str] = None, fmt: str = "text") -> logging.Logger:
    """Configure the ``galadriel`` logger tree and return its root."""

    logger = logging.getLogger("galadriel")
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())
    logger.addHandler(handler)
    return logger
