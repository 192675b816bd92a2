"""Structured JSON logging configuration."""

import json
import logging
import re
import sys
from datetime import UTC, datetime

# Patterns that may contain secrets or credentials, redacted before any log output
_SENSITIVE_PATTERNS = [
    (re.compile(r"(Authorization:\s*Bearer\s+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r'(api[_-]?key["\s:=]+)[^\s&"\']+', re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r'(access_token["\s:=]+)[^\s&"\']+', re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r'(password["\s:=]+)[^\s&"\']+', re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r'(secret["\s:=]+)[^\s&"\']+', re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}", re.IGNORECASE), "[REDACTED_API_KEY]"),
    (re.compile(r"EAA[a-zA-Z0-9]{20,}"), "[REDACTED_FB_TOKEN]"),
    (re.compile(r"r8_[a-zA-Z0-9]{20,}"), "[REDACTED_REPLICATE_TOKEN]"),
]

# Extra attributes copied onto JSON log lines when present on the record
_EXTRA_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "user_id",
    "batch_id",
    "post_id",
)


def redact(value: str) -> str:
    """Apply all sensitive-data patterns to a string and return the redacted result."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


class SensitiveDataFilter(logging.Filter):
    """Redacts bearer tokens, API keys, page tokens, passwords and secrets."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {
                k: (redact(v) if isinstance(v, str) else v) for k, v in record.args.items()
            }
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        try:
            return json.dumps(log_entry, default=str)
        except TypeError:
            return str(log_entry)


def setup_logging(json_output: bool = False, level: str = "INFO") -> None:
    """
    Configure root logger.

    Args:
        json_output: If True, use JSON formatter (for production).
                     If False, use standard human-readable format (for development).
        level: Log level string.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    # Filters on a handler see records from every logger, not only the root
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("replicate").setLevel(logging.WARNING)
