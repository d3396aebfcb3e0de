"""
Log output for the channel service.

Every module logs through a child of the ``corpchannel`` logger. Call sites attach
structured fields with ``extra={"extra_data": {...}}``; both formatters render them.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from corpchannel.core.config import Settings, get_settings

ROOT_LOGGER = "corpchannel"

TEXT_LINE = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TEXT_DATE = "%Y-%m-%dT%H:%M:%S"


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        # call-site fields never overwrite the envelope
        for key, value in _fields(record).items():
            entry.setdefault(key, value)
        if record.exc_info:
            entry["traceback"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines with structured fields appended as key=value."""

    def __init__(self):
        super().__init__(fmt=TEXT_LINE, datefmt=TEXT_DATE)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _fields(record)
        if not fields:
            return line
        return line + " " + " ".join(f"{k}={v}" for k, v in fields.items())


FORMATTERS = {"json": JSONFormatter, "text": TextFormatter}


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Point the service logger at stdout using the configured format and level."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    formatter_cls = FORMATTERS.get(settings.log_format.lower(), TextFormatter)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter_cls())

    service_logger = logging.getLogger(ROOT_LOGGER)
    service_logger.handlers[:] = [handler]
    service_logger.setLevel(level)
    # uvicorn configures the root logger; keep channel lines out of it
    service_logger.propagate = False
    return service_logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)
