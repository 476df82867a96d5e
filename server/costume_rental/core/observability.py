"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging
import sys

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "costume-rental-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
HOLDS_CREATED = Counter(
    'costume_holds_created_total',
    'Total soft holds placed on costumes',
    ['duration_code'],
    registry=REGISTRY
)

HOLDS_EXPIRED = Counter(
    'costume_holds_expired_total',
    'Total soft holds moved to expired by the sweep',
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    'costume_bookings_confirmed_total',
    'Total bookings confirmed',
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'costume_bookings_cancelled_total',
    'Total bookings cancelled',
    ['actor'],
    registry=REGISTRY
)

BOOKINGS_COMPLETED = Counter(
    'costume_bookings_completed_total',
    'Total bookings completed by a return',
    ['late'],
    registry=REGISTRY
)

REFUNDS_PROCESSED = Counter(
    'costume_deposit_refunds_processed_total',
    'Total security deposit refunds processed',
    registry=REGISTRY
)

AVAILABILITY_CONFLICTS = Counter(
    'costume_availability_conflicts_total',
    'Hold or confirm attempts rejected by an overlapping reservation',
    ['reason'],
    registry=REGISTRY
)


def _add_trace_context(logger, method_name, event_dict):
    """Add the active OpenTelemetry span to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict['trace_id'] = format(ctx.trace_id, '032x')
        event_dict['span_id'] = format(ctx.span_id, '016x')
    return event_dict


def setup_structured_logging():
    """
    Route stdlib logging through structlog.

    Modules keep using ``logging.getLogger(__name__)`` with ``extra={...}``;
    the root handler renders those records with structlog, as console output
    in development and JSON elsewhere.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        _add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    resource = Resource.create({
        "service.name": app_name,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)

    return trace.get_tracer(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_hold_created(duration_code: str | None):
        HOLDS_CREATED.labels(duration_code=duration_code or "range").inc()

    @staticmethod
    def record_holds_expired(count: int):
        if count > 0:
            HOLDS_EXPIRED.inc(count)

    @staticmethod
    def record_booking_confirmed():
        BOOKINGS_CONFIRMED.inc()

    @staticmethod
    def record_booking_cancelled(actor: str):
        BOOKINGS_CANCELLED.labels(actor=actor).inc()

    @staticmethod
    def record_booking_completed(late: bool):
        BOOKINGS_COMPLETED.labels(late=str(late).lower()).inc()

    @staticmethod
    def record_refund_processed():
        REFUNDS_PROCESSED.inc()

    @staticmethod
    def record_availability_conflict(reason: str):
        """Record a rejected hold or confirmation, labelled by conflict code."""
        AVAILABILITY_CONFLICTS.labels(reason=reason).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
