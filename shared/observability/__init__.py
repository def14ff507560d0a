"""Módulo de observabilidade: métricas Prometheus e tracing OpenTelemetry."""
from shared.observability.metrics import setup_metrics
from shared.observability.tracing import default_propagator, setup_tracing, shutdown_tracing

__all__ = [
    "setup_metrics",
    "setup_tracing",
    "shutdown_tracing",
    "default_propagator",
]
