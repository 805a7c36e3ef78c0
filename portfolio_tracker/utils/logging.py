# portfolio_tracker/utils/logging.py
"""
Logging configuration for the portfolio tracker.

This module provides centralized logging setup with:
- Level and format taken from Settings (PORTFOLIO_LOG_LEVEL / PORTFOLIO_LOG_FORMAT)
- JSON format option for log aggregation
- Thread name in every record (provider calls run on worker threads)
- Suppression of noisy third-party library logs

Usage:
    from portfolio_tracker.utils.logging import setup_logging

    setup_logging()                      # from environment
    setup_logging(level="DEBUG")         # explicit override

Log Levels:
    DEBUG   - Cache hits/misses, per-provider results
    INFO    - Provider initialization, fallbacks after rate limits
    WARNING - Short sells, provider timeouts, unresolved lookups
    ERROR   - Unexpected provider exceptions
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from portfolio_tracker.config import Settings

# =============================================================================
# CONSTANTS
# =============================================================================

# Default text format: timestamp | level | thread | logger_name | message
DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers to suppress (set to WARNING to reduce noise)
NOISY_LOGGERS = [
    "yfinance",
    "urllib3",
    "urllib3.connectionpool",
    "requests",
    "curl_cffi",
    "peewee",
]

# Standard LogRecord attributes, never copied into "extra"
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


# =============================================================================
# JSON FORMATTER
# =============================================================================

class JsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.123+00:00",
        "level": "WARNING",
        "logger": "portfolio_tracker.services.prices.service",
        "thread": "price-provider_0",
        "message": "Provider yahoo timed out after 10.0s",
        "extra": { ... }  // Any extra fields passed to logger
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                try:
                    # Ensure value is JSON serializable
                    json.dumps(value)
                    extra[key] = value
                except (TypeError, ValueError):
                    extra[key] = str(value)

        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry)


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        settings: Settings | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure logging on the root logger.

    Call once at startup. Explicit arguments win over settings; settings
    default to a fresh Settings() read from the environment.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'text' or 'json'
        settings: Source of defaults for level and format
        suppress_noisy_loggers: Set third-party loggers to WARNING
    """
    if level is None or log_format is None:
        settings = settings or Settings()
        level = level or settings.log_level
        log_format = log_format or settings.log_format

    log_level = _get_log_level(level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level}, format={log_format}",
        extra={"config": {"level": level, "format": log_format}},
    )


def _get_log_level(level_str: str) -> int:
    """
    Convert string log level to logging constant.

    Raises:
        ValueError: If level_str is not a valid log level
    """
    level_str = level_str.upper().strip()

    level_mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    if level_str not in level_mapping:
        valid_levels = ", ".join(level_mapping.keys())
        raise ValueError(
            f"Invalid log level: '{level_str}'. "
            f"Valid levels are: {valid_levels}"
        )

    return level_mapping[level_str]
