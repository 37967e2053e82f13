"""Storefront logging configuration.

Every handler installed here redacts credentials before a record is written:
bearer headers, Supabase JWTs, CSRF tokens and anything that looks like a
card number.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

REDACTED = "[REDACTED]"

_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+")
_JWT_RE = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
_CSRF_TOKEN_RE = re.compile(r"\b\d{10,}\.[0-9a-f]{16,}\.[0-9a-f]{64}\b")
_CARD_RE = re.compile(r"\b(?:\d[ -]?){12,18}\d\b")


def _luhn_valid(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _mask_card(match: re.Match) -> str:
    digits = re.sub(r"\D", "", match.group(0))
    if not _luhn_valid(digits):
        return match.group(0)
    return f"****{digits[-4:]}"


def redact(text: str) -> str:
    """Strip credentials and card numbers out of a log line."""
    text = _BEARER_RE.sub(f"Bearer {REDACTED}", text)
    text = _JWT_RE.sub(REDACTED, text)
    text = _CSRF_TOKEN_RE.sub(REDACTED, text)
    return _CARD_RE.sub(_mask_card, text)


class RedactingFilter(logging.Filter):
    """Rewrites the rendered message of each record through ``redact``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


class DevFormatter(logging.Formatter):
    """Readable single-line format; tracebacks are redacted too."""

    def __init__(self):
        super().__init__(fmt=DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def formatException(self, ei) -> str:
        return redact(super().formatException(ei))


class JSONFormatter(logging.Formatter):
    """One JSON object per line, built with json.dumps()."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log_entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'dev' for readable output
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type == "structured" else DevFormatter())
    handler.addFilter(RedactingFilter())
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper()))

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # httpx logs every request URL at INFO, which includes Supabase endpoints
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger("storefront").info(
        f"Logging configured: level={level}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the storefront prefix."""
    return logging.getLogger(f"storefront.{name}")
