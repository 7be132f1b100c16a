import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Stamps the active correlation id on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def bind_correlation_id(value: Optional[str] = None) -> str:
    """
    Bind a correlation id to the current context.

    Args:
        value: Incoming id (e.g. X-Request-ID header); a new one is generated if empty

    Returns:
        The bound correlation id
    """
    correlation_id = value or uuid.uuid4().hex
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    return correlation_id_var.get()


def setup_logging():
    """
    Configure structured logging for the application.
    
    Sets up logging to stdout with timestamps, log levels and the request
    correlation id so that every line emitted while serving one request can
    be grouped together.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] [cid=%(correlation_id)s] %(message)s",
        handlers=[handler]
    )
    
    # Reduce SQLAlchemy noise in logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    
    return logging.getLogger("fieldops")


# Create global logger instance
logger = setup_logging()
