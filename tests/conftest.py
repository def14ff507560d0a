"""
Configuração do pytest e fixtures compartilhadas.
"""

import os

import pytest

# Sem exporter OTLP nos testes; definido antes de qualquer import de shared.config
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from projects.pipeline.config import PipelineSettings
from projects.pipeline.work import WorkOutcome
from shared.config import Settings
from shared.infrastructure.tracing.context import clear_trace_context
from shared.infrastructure.tracing.telemetry import OpenTelemetrySink


class FixedWork:
    """Trabalho sem espera que reporta uma duração fixa."""

    def __init__(self, duration_ms: float, output=None):
        self.duration_ms = duration_ms
        self.output = output or {"processed": True}
        self.calls = 0

    async def run(self, envelope):
        self.calls += 1
        return WorkOutcome(duration_ms=self.duration_ms, output=dict(self.output))


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def telemetry(tracer_provider):
    """TelemetrySink real sobre um provider com exporter em memória."""
    return OpenTelemetrySink(tracer_provider=tracer_provider, instrumentation_name="tests")


@pytest.fixture
def pipeline_config():
    return PipelineSettings(
        pipeline_queue_ref="queue://trace-pipeline",
        batch_job_queue="trace-job-queue",
        batch_job_definition="trace-job-definition",
        state_machine_ref="state-machine://trace-pipeline",
        pipeline_handoff_timeout_seconds=1.0,
        compute_work_ms=0.0,
        workflow_step_a_work_ms=0.0,
        workflow_step_b_work_ms=0.0,
    )


@pytest.fixture
def app_settings():
    return Settings(tracing_enabled=False, service_name_prefix="trace-pipeline")


@pytest.fixture
def fixed_work():
    """Fábrica de FixedWork."""
    return FixedWork


@pytest.fixture(autouse=True)
def _clear_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()
