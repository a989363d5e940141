"""
Structured logging for the dispatch layer.

- JSON log lines with UTC timestamps
- Correlation IDs scoped to one dispatch
- Event names carried through ``extra={"event": ...}``
- Sensitive payload fields redacted before they reach a handler
"""

import hashlib
import json
import logging
import os
import sys
import threading
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variable for correlation ID (thread-safe)
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "correlation_id"}

SENSITIVE_KEYS = ("mnemonic", "passphrase", "pin", "private_key", "seed", "secret")


def _sanitize(data: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "REDACTED"
        elif isinstance(value, dict):
            sanitized[key] = _sanitize(value)
        else:
            sanitized[key] = value
    return sanitized


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        corr_id = correlation_id.get()
        if corr_id:
            log_entry["correlation_id"] = corr_id

        log_entry["thread"] = {"id": threading.get_ident(), "name": threading.current_thread().name}

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extras:
            log_entry.update(_sanitize(extras))

        return json.dumps(log_entry, default=str)


class CorrelationIDFilter(logging.Filter):
    """Filter to add correlation ID to log records"""

    def filter(self, record):
        corr_id = correlation_id.get()
        record.correlation_id = corr_id if corr_id else "NO-ID"
        return True


class LogContext:
    """
    Context manager for correlation ID tracking

    Usage:
        with LogContext() as ctx:
            logger.info("dispatch started", extra={"event": "router.dispatch"})
    """

    def __init__(self, custom_id: Optional[str] = None):
        self.correlation_id = custom_id or self._generate_correlation_id()
        self.token = None

    @staticmethod
    def _generate_correlation_id() -> str:
        hash_input = str(time.time()).encode() + str(threading.get_ident()).encode() + os.urandom(8)
        return hashlib.sha256(hash_input).hexdigest()[:16]

    def __enter__(self):
        self.token = correlation_id.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id.reset(self.token)


def configure_logging(level: str = "WARNING", json_output: bool = False, stream=None) -> logging.Logger:
    """
    Attach a single stream handler to the ``hwdispatch`` logger.

    Calling it again replaces the previous handler instead of stacking them.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_output: Emit JSON lines instead of plain text
        stream: Target stream, stderr by default

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("hwdispatch")
    package_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    for handler in list(package_logger.handlers):
        if getattr(handler, "_hwdispatch_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._hwdispatch_handler = True
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler.addFilter(CorrelationIDFilter())
    package_logger.addHandler(handler)
    return package_logger
