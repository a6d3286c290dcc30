"""
Monitoring and observability utilities for the task graph service.

Provides:
- Prometheus metrics (HTTP requests plus dependency-engine counters)
- Request tracing (unique request IDs carried in a ContextVar)
"""
import re
import time
import uuid
import logging
from typing import Callable
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_client import Counter, Histogram, generate_latest

# Request context variable for tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

# HTTP metrics
http_requests_total = Counter(
    'taskgraph_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'taskgraph_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# Engine metrics
dependency_operations_total = Counter(
    'taskgraph_dependency_operations_total',
    'Dependency and hierarchy mutations by outcome',
    ['operation', 'outcome']
)

cycle_rejections_total = Counter(
    'taskgraph_cycle_rejections_total',
    'Mutations rejected because they would introduce a cycle',
    ['source']
)

graph_build_seconds = Histogram(
    'taskgraph_graph_build_seconds',
    'Time spent building project dependency graphs',
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0)
)

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get('')


def set_request_id(request_id: str) -> None:
    """Set the request ID in context."""
    request_id_var.set(request_id)


def record_operation(operation: str, outcome: str) -> None:
    """Count one engine operation (outcome: success, rejected, error, or partial for bulk)."""
    dependency_operations_total.labels(operation=operation, outcome=outcome).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for collecting Prometheus metrics and request tracing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        set_request_id(request_id)

        endpoint = self._get_endpoint_path(request.url.path)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed with exception",
                exc_info=True,
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "exception_type": type(e).__name__,
                }
            )
            raise

        duration = time.time() - start_time
        status_code = response.status_code
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=status_code
        ).observe(duration)

        if status_code >= 400:
            logger.warning(
                "Request error",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_seconds": duration,
                }
            )

        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    def _get_endpoint_path(path: str) -> str:
        """Normalize endpoint path for metrics (remove IDs)."""
        path = re.sub(r'/\d+', '/{id}', path)
        return path[:100]


def get_metrics() -> str:
    """Get Prometheus metrics in text format."""
    return generate_latest().decode('utf-8')
