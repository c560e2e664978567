"""
Logging configuration.

All service loggers live under the "rideon" namespace and carry
structured context through the `extra` argument. Every record is stamped
with the correlation ID of the request being served, so the quote and
charge calls of one trip can be followed across log lines.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional


LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - "
    "%(filename)s:%(lineno)d - %(message)s"
)

# Set per request by ObservabilityMiddleware
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Attach the current request's correlation ID to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(log_level: str = "INFO", log_format: Optional[str] = None) -> None:
    """
    Configure root logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Optional custom log format
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format or LOG_FORMAT,
        handlers=[handler],
    )

    # Quieten noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the rideon namespace."""
    if not name.startswith("rideon"):
        name = f"rideon.{name}"
    return logging.getLogger(name)
