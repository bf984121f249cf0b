"""OpenTelemetry tracing setup.

Tracing is enabled only when an OTLP endpoint is configured through the
standard ``OTEL_EXPORTER_OTLP_ENDPOINT`` variable. Without it the global
no-op tracer stays in place, and the spans opened by the client and scheduler
cost nothing.
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ci_snapshot import __version__

logger = logging.getLogger(__name__)


def setup_tracing(service_name: str = "ci-snapshot") -> TracerProvider | None:
    """Initialize OpenTelemetry tracing if OTLP endpoint is configured.

    Returns the installed provider so the caller can flush it on exit, or
    None if tracing stays disabled.
    """
    otlp_endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.debug(
            "OpenTelemetry tracing disabled for %s (no OTEL_EXPORTER_OTLP_ENDPOINT)",
            service_name,
        )
        return None

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)

    logger.info("OpenTelemetry tracing initialized for %s", service_name)
    return provider


def shutdown_tracing(provider: TracerProvider | None) -> None:
    """Flush pending spans and stop the exporter."""
    if provider is not None:
        provider.shutdown()
