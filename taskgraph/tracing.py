"""
Distributed tracing for the task graph service using OpenTelemetry.

Provides:
- Tracer provider setup (console exporter for local debugging)
- OpenTelemetry instrumentation for FastAPI
- Span helpers used around store queries and graph computations
"""
import logging
from typing import Optional, Dict, Any
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from taskgraph import config

logger = logging.getLogger(__name__)

# Global tracer
_tracer: Optional[trace.Tracer] = None


def setup_tracing() -> None:
    """Initialize OpenTelemetry tracing for the service."""
    global _tracer

    if _tracer is not None:
        logger.warning("Tracing already initialized")
        return

    logger.info(
        "Initializing OpenTelemetry tracing",
        extra={
            "service_name": config.SERVICE_NAME,
            "enable_console": config.ENABLE_CONSOLE_TRACING,
        }
    )

    resource = Resource.create({
        "service.name": config.SERVICE_NAME,
        "service.version": config.SERVICE_VERSION,
    })
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    # Console exporter (for debugging)
    if config.ENABLE_CONSOLE_TRACING:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console exporter enabled")

    _tracer = trace.get_tracer(__name__)
    logger.info("OpenTelemetry tracing initialized successfully")


def instrument_fastapi(app) -> None:
    """Instrument FastAPI application with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)
    logger.info("FastAPI instrumentation enabled")


def get_tracer() -> trace.Tracer:
    """Get the global tracer, or the API default (no-op until setup_tracing runs)."""
    return _tracer or trace.get_tracer(__name__)


@contextmanager
def trace_span(
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL
):
    """
    Context manager for creating a trace span.

    Args:
        name: Name of the span
        attributes: Optional attributes to add to the span
        kind: Span kind (INTERNAL, SERVER, CLIENT, etc.)

    Example:
        with trace_span("graph.scc", {"project_id": 3}):
            find_cycles(edges)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind) as span:
        if attributes:
            for key, value in attributes.items():
                if value is None:
                    continue
                if isinstance(value, (str, int, float, bool)):
                    span.set_attribute(key, value)
                else:
                    span.set_attribute(key, str(value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current active span."""
    span = trace.get_current_span()
    if span:
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))
