"""
Application factory - creates and configures the FastAPI application.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from taskgraph import config
from taskgraph.api.routes.dependencies import router as dependencies_router
from taskgraph.app.handlers import setup_exception_handlers
from taskgraph.app.services import ServiceContainer, get_services, set_services
from taskgraph.logging_setup import configure_logging
from taskgraph.monitoring import MetricsMiddleware, get_metrics
from taskgraph.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    logger.info("Application starting up...")
    get_services()
    logger.info("Services initialized")

    try:
        setup_tracing()
        instrument_fastapi(app)
        logger.info("Distributed tracing enabled")
    except Exception:
        logger.warning("Failed to initialize tracing, continuing without it", exc_info=True)

    yield

    logger.info("Shutdown complete")


def create_app(db_path: Optional[str] = None, enable_tracing: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        db_path: SQLite path; when given, a fresh service container is
            installed for it
        enable_tracing: Set up OpenTelemetry during startup

    Returns:
        Configured FastAPI app instance ready to run.
    """
    configure_logging()

    if db_path is not None:
        set_services(ServiceContainer(db_path))

    app = FastAPI(
        title="Task Graph Service",
        description="Task dependency and hierarchy graph engine",
        version=config.SERVICE_VERSION,
        lifespan=lifespan if enable_tracing else None
    )

    app.add_middleware(MetricsMiddleware)
    setup_exception_handlers(app)
    app.include_router(dependencies_router)

    @app.get("/health")
    def health():
        """Liveness probe."""
        return {"status": "healthy", "service": config.SERVICE_NAME, "version": config.SERVICE_VERSION}

    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)

    return app
