"""
Logging configuration and setup.
"""
import logging

from taskgraph import config
from taskgraph.monitoring import get_request_id

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s'


class RequestIDFilter(logging.Filter):
    """Logging filter to add request ID to log records."""

    def filter(self, record):
        """Add request_id to log record if available."""
        if not getattr(record, 'request_id', None):
            record.request_id = get_request_id() or '-'
        return True


class SafeFormatter(logging.Formatter):
    """Safe formatter that handles missing request_id gracefully."""

    def format(self, record):
        """Format log record, handling missing request_id."""
        if not hasattr(record, 'request_id'):
            record.request_id = '-'
        return super().format(record)


def configure_logging(level: str = None) -> None:
    """
    Configure root logging with request-id aware formatting.

    Args:
        level: Log level name; defaults to LOG_LEVEL from the environment.
    """
    level_name = (level or config.LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(SafeFormatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        handlers=[handler],
        force=True
    )
