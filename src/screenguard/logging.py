"""Logging setup for hosts and the CLI.

Module loggers (``logging.getLogger(__name__)``) stay unconfigured until a
host calls :func:`setup_logging`.  The console handler it installs runs every
record through :class:`PIISafeFilter`, which blanks anything the fallback
detector would flag, so a log line can never carry a value the scanner is
hiding on screen.
"""

import logging
import logging.config

from .patterns import PATTERNS

REDACTED = "[REDACTED]"


class PIISafeFilter(logging.Filter):
    """Blank PII-shaped substrings in the message and its string arguments."""

    def _scrub(self, value: object) -> object:
        if not isinstance(value, str):
            return value
        for pattern in PATTERNS:
            value = pattern.sub(REDACTED, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._scrub(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self._scrub(arg) for key, arg in record.args.items()}
        return True


def setup_logging(level: str = "INFO") -> None:
    """Route ``screenguard`` (and quiet ``httpx``) logs to stderr through the filter."""
    handler = {
        "class": "logging.StreamHandler",
        "stream": "ext://sys.stderr",
        "formatter": "plain",
        "filters": ["scrub_pii"],
    }
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"scrub_pii": {"()": PIISafeFilter}},
        "formatters": {
            "plain": {"format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s"},
        },
        "handlers": {"stderr": handler},
        "loggers": {
            "screenguard": {"handlers": ["stderr"], "level": level.upper(), "propagate": False},
            "httpx": {"handlers": ["stderr"], "level": "WARNING", "propagate": False},
        },
    })
