"""
Runtime configuration for the task graph service.

All values are read from environment variables at import time.
"""
import os
from typing import FrozenSet

# Database path for the SQLite reference store
DB_PATH = os.getenv("TASKGRAPH_DB_PATH", "/app/data/taskgraph.db")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Query performance threshold (seconds) - queries slower than this will be logged
QUERY_SLOW_THRESHOLD = float(os.getenv("DB_QUERY_SLOW_THRESHOLD", "0.1"))
# Enable query logging (can be set via environment variable)
ENABLE_QUERY_LOGGING = os.getenv("DB_ENABLE_QUERY_LOGGING", "true").lower() == "true"

# Hierarchy limits
DEFAULT_TREE_DEPTH = int(os.getenv("TASKGRAPH_DEFAULT_TREE_DEPTH", "5"))
MAX_HIERARCHY_DEPTH = int(os.getenv("TASKGRAPH_MAX_HIERARCHY_DEPTH", "10"))


def _parse_statuses(raw: str) -> FrozenSet[str]:
    return frozenset(s.strip().lower() for s in raw.split(",") if s.strip())


# Statuses that resolve a blocking dependency
TERMINAL_STATUSES = _parse_statuses(os.getenv("TASKGRAPH_TERMINAL_STATUSES", "done,cancelled"))

# Tracing
SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "taskgraph-service")
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "0.1.0")
ENABLE_CONSOLE_TRACING = os.getenv("OTEL_CONSOLE_EXPORTER_ENABLED", "false").lower() == "true"

# HTTP server
SERVICE_PORT = int(os.getenv("TASKGRAPH_SERVICE_PORT", "8004"))
