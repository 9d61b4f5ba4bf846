"""
FHEVM SDK logging configuration.

Provides consistent logging across SDK modules with:
- Structured JSON output for production
- Human-readable output for development
- Redaction of signatures, keys and other secrets passed as extra fields

Usage:
    from fhevm_sdk.logging import get_logger, configure_logging

    # At application startup
    configure_logging(level="INFO", json_format=True)

    # In modules
    logger = get_logger(__name__)
    logger.info("Instance ready", extra={"network": "sepolia"})

Library modules log through ``logging.getLogger(__name__)``; nothing is
configured on import, so applications keep control of handlers.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROOT_LOGGER = "fhevm_sdk"

# Sensitive field patterns to filter from logs
SENSITIVE_PATTERNS = frozenset(
    {
        "signature",
        "private_key",
        "privatekey",
        "secret",
        "token",
        "api_key",
        "apikey",
        "password",
        "mnemonic",
        "seed",
        "plaintext",
    }
)

# Standard LogRecord attributes, never treated as extra fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _is_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive data."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _filter_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively filter sensitive values from a dictionary."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            filtered[key] = "[REDACTED]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive(value)
        elif isinstance(value, list):
            filtered[key] = [_filter_sensitive(item) if isinstance(item, dict) else item for item in value]
        else:
            filtered[key] = value
    return filtered


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    extra = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRS:
            continue
        if _is_sensitive_key(key):
            extra[key] = "[REDACTED]"
        elif isinstance(value, dict):
            extra[key] = _filter_sensitive(value)
        else:
            extra[key] = value
    return extra


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_data["location"] = {
                "file": os.path.basename(record.pathname),
                "line": record.lineno,
                "function": record.funcName,
            }

        extra = _extra_fields(record)
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if color else ""

        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        level = f"{color}{record.levelname:8}{reset}"
        name = record.name.split(".")[-1][:15].ljust(15)
        message = record.getMessage()

        extra = _extra_fields(record)
        if extra:
            message += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        formatted = f"{timestamp} {level} {name} {message}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: Optional[bool] = None,
    stream: Any = None,
) -> logging.Logger:
    """
    Configure logging for the fhevm_sdk logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON output. Default: True when FHEVM_ENVIRONMENT=production
        stream: Output stream. Default: sys.stderr

    Returns:
        The configured fhevm_sdk logger
    """
    if json_format is None:
        env = os.environ.get("FHEVM_ENVIRONMENT", "development")
        json_format = env == "production"

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter(use_color=stream is None))

    root_logger.addHandler(handler)
    root_logger.propagate = False
    return root_logger


def configure_from_settings(settings: Any) -> logging.Logger:
    """Configure logging from FhevmSettings (log_level, log_json)."""
    return configure_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the fhevm_sdk namespace.

    Usage:
        logger = get_logger(__name__)
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "StructuredFormatter",
    "DevelopmentFormatter",
]
