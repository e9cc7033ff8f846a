"""
Tracer Provider Bootstrap.

Installs an OpenTelemetry SDK tracer provider for the process when tracing
is enabled in observability.yaml. Propagation works regardless; this only
decides whether spans are recorded and exported.

Exporters:
    otlp    - OTLP over gRPC to OTEL_EXPORTER_OTLP_ENDPOINT
    console - print finished spans to stdout (local debugging)
    none    - record spans without exporting them
"""

from collections.abc import Callable

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ALWAYS_ON, ParentBased, TraceIdRatioBased

from userflow.core.config_schema import TracingSchema
from userflow.core.exceptions import ConfigurationError
from userflow.core.logging import get_logger

logger = get_logger(__name__)

VALID_EXPORTERS = frozenset({"otlp", "console", "none"})


def _create_exporter(exporter: str, otlp_endpoint: str | None) -> SpanExporter | None:
    if exporter == "console":
        return ConsoleSpanExporter()
    if exporter == "otlp":
        if not otlp_endpoint:
            raise ConfigurationError("OTEL_EXPORTER_OTLP_ENDPOINT not set")
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
    return None


def build_tracer_provider(
    config: TracingSchema,
    service_name: str,
    otlp_endpoint: str | None = None,
) -> TracerProvider:
    """
    Build a tracer provider from tracing settings.

    Raises:
        ConfigurationError: On an unknown exporter or a missing OTLP endpoint
    """
    if config.exporter not in VALID_EXPORTERS:
        raise ConfigurationError(f"Unknown trace exporter: {config.exporter}")

    sampler = ALWAYS_ON if config.sample_rate >= 1.0 else ParentBased(TraceIdRatioBased(config.sample_rate))
    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name}),
        sampler=sampler,
    )
    exporter = _create_exporter(config.exporter, otlp_endpoint)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def setup_tracing(
    config: TracingSchema,
    service_name: str,
    otlp_endpoint: str | None = None,
) -> Callable[[], None]:
    """
    Install the global tracer provider when tracing is enabled.

    Returns:
        Shutdown callable flushing pending spans (no-op when disabled)
    """
    if not config.enabled:
        logger.debug("Tracing disabled, spans are not recorded")
        return lambda: None

    provider = build_tracer_provider(config, service_name, otlp_endpoint)
    trace.set_tracer_provider(provider)
    logger.info(
        "Tracing enabled",
        extra={"service_name": service_name, "exporter": config.exporter, "sample_rate": config.sample_rate},
    )
    return provider.shutdown
