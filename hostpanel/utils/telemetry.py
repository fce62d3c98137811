"""OpenTelemetry tracing for the panel.

Services open spans named ``service.<area>.<operation>``, clients open
``daemon.*`` and ``mysql.*`` spans. Spans are only exported when
``OTEL_EXPORT_CONSOLE`` is set; otherwise they still feed trace ids into
the structured logs.
"""

import logging
from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

from hostpanel import __version__
from hostpanel.config import settings

logger = logging.getLogger(__name__)

TRACER_NAME = "hostpanel"

_tracer: Optional[trace.Tracer] = None


def setup_telemetry() -> None:
    """Install the tracer provider. Call once at startup."""
    global _tracer

    provider = TracerProvider(
        resource=Resource(
            attributes={
                SERVICE_NAME: settings.OTEL_SERVICE_NAME,
                SERVICE_VERSION: __version__,
                "environment": settings.ENVIRONMENT,
            }
        ),
        sampler=TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATE),
    )
    if settings.OTEL_EXPORT_CONSOLE:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(TRACER_NAME, __version__)

    logger.info(
        "OpenTelemetry initialized",
        extra={
            "service_name": settings.OTEL_SERVICE_NAME,
            "sample_rate": settings.OTEL_TRACE_SAMPLE_RATE,
            "export_console": settings.OTEL_EXPORT_CONSOLE,
        },
    )


def instrument_app(app: Any) -> None:
    """Trace every FastAPI request."""
    try:
        FastAPIInstrumentor.instrument_app(app)
    except Exception as e:
        logger.warning("Failed to instrument FastAPI", extra={"error": str(e)})


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace queries of ``engine`` (the sync engine behind an async one)."""
    try:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    except Exception as e:
        logger.warning("Failed to instrument SQLAlchemy", extra={"error": str(e)})


def get_tracer() -> trace.Tracer:
    """Tracer shared by services and clients.

    Before ``setup_telemetry`` runs this is the default (no-op) provider's
    tracer, so modules can grab it at import time.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME, __version__)
    return _tracer


def add_span_attributes(**attributes) -> None:
    """Set attributes on the current span, skipping ``None`` values.

    Example:
        add_span_attributes(**{"server.id": server.id, "node.id": node.id})
    """
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


def add_span_event(name: str, attributes: Optional[dict] = None) -> None:
    """Record a named event on the current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})
