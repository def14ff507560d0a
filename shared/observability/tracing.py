"""Configuração de tracing distribuído com OpenTelemetry."""
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.baggage.propagation import W3CBaggagePropagator

from shared.config import settings
from shared.infrastructure.logging.structlog_config import get_logger

logger = get_logger(__name__)


def default_propagator() -> TextMapPropagator:
    """Propagador W3C TraceContext + Baggage."""
    return CompositePropagator([
        TraceContextTextMapPropagator(),
        W3CBaggagePropagator(),
    ])


def setup_tracing(
    service_name: str,
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
) -> TracerProvider:
    """Inicializa OpenTelemetry tracing com OTLP gRPC exporter.

    Args:
        service_name: Nome do serviço (ex: trace-pipeline-ingress)
        service_version: Versão do serviço
        otlp_endpoint: Endpoint do OTel Collector (default: settings.otel_exporter_otlp_endpoint)
    """
    endpoint = otlp_endpoint or settings.otel_exporter_otlp_endpoint

    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    if settings.tracing_enabled:
        exporter = OTLPSpanExporter(
            endpoint=endpoint,
            headers=settings.otlp_headers or None,
            insecure=endpoint.startswith("http://"),
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        logger.info("Exportação de spans desabilitada", service=service_name)
    trace.set_tracer_provider(provider)

    # Propagação W3C TraceContext + Baggage para bibliotecas instrumentadas
    set_global_textmap(default_propagator())

    return provider


def shutdown_tracing(provider: Optional[TracerProvider] = None) -> None:
    """Exporta spans pendentes antes do processo encerrar."""
    provider = provider or trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.force_flush()
        provider.shutdown()
