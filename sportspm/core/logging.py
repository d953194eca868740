"""
Logging Setup Module

Configures the standard library logger tree for the ``sportspm`` package.
Output goes to stdout as plain text, or as one JSON object per line when
LOG_JSON is enabled.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from sportspm.core.config import settings

_LOGGING_CONFIGURED = False
_RESERVED_LOG_RECORD_FIELDS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a log record, including any ``extra`` fields, as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_app_logging() -> None:
    """Attach a stdout handler to the package logger. Safe to call repeatedly."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level_name = (settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter: logging.Formatter
    if settings.LOG_JSON:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    app_logger = logging.getLogger("sportspm")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(level)
    app_logger.propagate = False

    logging.getLogger(__name__).info(
        "Application logging configured. level=%s json=%s",
        level_name,
        str(settings.LOG_JSON).lower(),
    )
    _LOGGING_CONFIGURED = True
