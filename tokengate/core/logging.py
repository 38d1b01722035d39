"""tokengate logging setup.

Two output formats: JSON lines for production and a readable format when
DEBUG is on. Every handler installed here carries TokenRedactionFilter, so
a bearer credential that slips into a message or a traceback is masked
before it is written.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

REDACTED = "[REDACTED]"

# Compact JWS: base64url JSON header (always starts "eyJ"), payload, signature
_JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
_BEARER_PATTERN = re.compile(r"(?i)\b(bearer)\s+\S+")


def redact_tokens(text: str) -> str:
    """Mask JWT-shaped strings and ``Bearer <credential>`` values."""
    text = _BEARER_PATTERN.sub(rf"\1 {REDACTED}", text)
    return _JWT_PATTERN.sub(REDACTED, text)


class TokenRedactionFilter(logging.Filter):
    """Rewrite records so they never carry a token value."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; tracebacks are redacted as well."""

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
            log_entry["exception"] = redact_tokens(self.formatException(record.exc_info))
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
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(TokenRedactionFilter())

    logging.root.handlers = [handler]
    logging.root.setLevel(level.upper())

    # One line per request is too noisy; rejections are logged by the middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger("tokengate").info(
        f"Logging configured: level={level.upper()}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the tokengate prefix."""
    return logging.getLogger(f"tokengate.{name}")
