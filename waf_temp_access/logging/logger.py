
"""Structured logging helper (key=value lines on stderr)."""

from __future__ import annotations
import logging
import secrets
import sys
import time
from typing import Any


class KVFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            base.update(extra)
        line = " ".join([f"{k}={v!r}" for k, v in base.items()])
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(level.upper())
    h = logging.StreamHandler(sys.stderr)  # stdout is reserved for CI outputs / wrapped command
    h.setFormatter(KVFormatter())
    logger.addHandler(h)
    logger.propagate = False
    return logger


def log(logger: logging.Logger, message: str, **fields: Any) -> None:
    logger.info(message, extra={"extra": fields})


def warn(logger: logging.Logger, message: str, **fields: Any) -> None:
    logger.warning(message, extra={"extra": fields})


def debug(logger: logging.Logger, message: str, **fields: Any) -> None:
    logger.debug(message, extra={"extra": fields})


def new_trace_id(prefix: str = "run") -> str:
    """Correlates the grant/revoke log lines of one invocation."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
