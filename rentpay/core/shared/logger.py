"""
Shared Logger

Logging setup for the service. Every record is stamped with the current
request's correlation id, and Kenyan MSISDNs are masked before they reach
a handler (raw Daraja webhook bodies carry the payer's phone number).
"""

import copy
import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import UTC, datetime

# Set by RequestLoggingMiddleware for the duration of a request
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "sqlalchemy.engine")

LINE_FORMAT = "%(asctime)s | %(levelname)s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_MSISDN = re.compile(r"\b(254\d{3})\d{3}(\d{3})\b")


def mask_phone_numbers(text: str) -> str:
    """254712345678 -> 254712***678"""
    return _MSISDN.sub(r"\1***\2", text)


class PaymentLogFilter(logging.Filter):
    """Adds `correlation_id` and masks phone numbers in the final message."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        message = record.getMessage()
        masked = mask_phone_numbers(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers still see the plain level name
        colored = copy.copy(record)
        colored.levelname = f"{self.COLORS.get(record.levelname, self.RESET)}{record.levelname}{self.RESET}"
        return super().format(colored)


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return JSONFormatter()
    if format_type == "colored":
        return ColoredFormatter(LINE_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT)


def configure_logging(level: str = "INFO", format_type: str = "colored", log_file: str | None = None) -> None:
    """
    Configure root logging.

    Args:
        level: Log level name
        format_type: 'colored', 'json' or 'plain'
        log_file: Optional path; the file always receives JSON lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(_build_formatter(format_type))
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    log_filter = PaymentLogFilter()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.addFilter(log_filter)
        root_logger.addHandler(handler)

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
