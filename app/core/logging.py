"""Logging setup: basicConfig plus a filter that masks secrets."""

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"

# Keys whose values must never reach log output.
SECRET_KEYS = frozenset(
    {
        "password",
        "current_password",
        "new_password",
        "new_password_confirmation",
        "token",
        "temporary_password",
        "password_hash",
    }
)
REDACTED = "[REDACTED]"


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (REDACTED if isinstance(k, str) and k.lower() in SECRET_KEYS else _redact(v))
            for k, v in value.items()
        }
    return value


class SecretRedactingFilter(logging.Filter):
    """Mask secret values passed via dict args or `extra=` fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = _redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(_redact(a) for a in record.args)
        for key in SECRET_KEYS:
            if key in record.__dict__:
                setattr(record, key, REDACTED)
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once and attach the redaction filter to every root handler."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, SecretRedactingFilter) for f in handler.filters):
            handler.addFilter(SecretRedactingFilter())
