import logging

from opentelemetry import trace

from app.config import settings

logger = logging.getLogger(__name__)

_TRACER_NAME = "message_engine"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Tracer for messaging spans; a no-op tracer until ``setup_otel`` runs."""
    return trace.get_tracer(name or _TRACER_NAME)


def _instrument_fastapi(app) -> None:
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(app)


def _instrument_sqlalchemy(app) -> None:
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    from app.db import get_engine

    SQLAlchemyInstrumentor().instrument(engine=get_engine())


def _instrument_logging(app) -> None:
    from opentelemetry.instrumentation.logging import LoggingInstrumentor

    LoggingInstrumentor().instrument(set_logging_format=True)


_INSTRUMENTORS = (
    ("FastAPI", _instrument_fastapi),
    ("SQLAlchemy", _instrument_sqlalchemy),
    ("logging", _instrument_logging),
)


def setup_otel(app) -> None:
    """Install the OTLP tracer provider and instrument the app.

    Does nothing unless ``OTEL_ENABLED`` is set. Each instrumentor is applied
    independently; one that fails is logged and skipped.
    """
    if not settings.otel_enabled:
        return

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(resource=Resource.create({"service.name": settings.otel_service_name}))
    endpoint = settings.otel_exporter_otlp_endpoint
    exporter = OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces") if endpoint else OTLPSpanExporter()
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    for label, instrument in _INSTRUMENTORS:
        try:
            instrument(app)
            logger.info("OTel: %s instrumented", label)
        except Exception:
            logger.warning("OTel: %s instrumentation unavailable", label, exc_info=True)

    logger.info("OpenTelemetry tracing enabled (service=%s)", settings.otel_service_name)
