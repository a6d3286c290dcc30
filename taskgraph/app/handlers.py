"""
Exception handlers for the application.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from taskgraph.exceptions import ServiceError, to_http_exception
from taskgraph.monitoring import get_request_id

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map typed service errors that escaped a route onto their status codes."""
    if not exc.request_id:
        exc.request_id = get_request_id() or None
    http_exc = to_http_exception(exc)
    if http_exc.status_code >= 500:
        logger.error(
            f"Service error in {request.method} {request.url.path}: {exc.message}",
            exc_info=exc,
            extra={"path": request.url.path, "error_type": type(exc).__name__}
        )
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    request_id = get_request_id() or '-'
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
        exc_info=exc,
        extra={
            "method": request.method,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        }
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred. Please try again or contact support if the issue persists.",
            "path": request.url.path,
            "method": request.method,
            "request_id": request_id
        }
    )


def setup_exception_handlers(app) -> None:
    """Register exception handlers on the app."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
