"""Marcus — Structured JSON Logging.

One JSON object per line on stdout. Platform tokens travel in query strings
(Meta) and headers (Google), so anything that looks like one is masked
before a record is written.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone

from marcus.config import settings

# Structured keys adapters and the aggregator pass through ``extra=``
EXTRA_FIELDS = (
    "platform",
    "operation",
    "attempt",
    "delay_s",
    "error_kind",
    "duration_ms",
    "status_code",
)

_SECRET_PATTERNS = (
    re.compile(r"(access_token=)[^&\s\"']+"),
    re.compile(r"(refresh_token=)[^&\s\"']+"),
    re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"),
)


def redact(text: str) -> str:
    """Mask token values, keeping the parameter name for context."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1****", text)
    return text


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = redact(self.formatException(record.exc_info))
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return ``marcus.<name>`` with the JSON stdout handler attached once."""
    logger = logging.getLogger(f"marcus.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger
