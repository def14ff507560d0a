"""
Ciclo de vida comum dos estágios do pipeline.

Cada estágio é uma ativação única e sem estado: continua (ou inicia) o trace,
executa o seu trabalho, insere o carrier de saída, anexa o seu resultado ao
envelope e faz o handoff para o próximo transporte. Logs e atributos são
emitidos apenas na entrada, no handoff, na conclusão e no erro.
"""

import json
import time
from abc import ABC
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, ClassVar, Mapping, Optional, TypeVar

from opentelemetry.trace import SpanKind

from projects.pipeline.config import PipelineSettings, get_pipeline_settings
from projects.pipeline.domain.envelope import PipelineEnvelope, StageName, StageResult
from projects.pipeline.transports.base import call_with_timeout
from projects.pipeline.work import WorkOutcome
from shared.config import Settings, get_settings
from shared.core.exceptions import PayloadError, TransportError
from shared.infrastructure.logging.structlog_config import bind_stage_context, clear_stage_context
from shared.infrastructure.tracing.context import clear_trace_context, set_trace_context
from shared.infrastructure.tracing.events import (
    log_payload_substituted,
    log_stage_completed,
    log_stage_failed,
    log_stage_handoff,
    log_stage_started,
)
from shared.infrastructure.tracing.telemetry import ActiveTrace, TelemetrySink
from shared.observability.metrics import (
    payload_substitutions_total,
    stage_duration_seconds,
    stage_invocations_total,
)

T = TypeVar("T")


@dataclass(frozen=True)
class InvocationContext:
    """Metadados de execução fornecidos pelo transporte que ativou o estágio."""

    invocation_id: str
    function_name: str

    def for_message(self, message_id: str) -> "InvocationContext":
        """Contexto de um registro dentro de um lote."""
        return InvocationContext(f"{self.invocation_id}/{message_id}", self.function_name)


@dataclass
class StageActivation:
    """Estado local de uma ativação (não sobrevive à invocação)."""

    active: ActiveTrace
    invocation: InvocationContext
    started: float
    parent_trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    transport_id: Optional[str] = None

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000


def raw_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        return raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, default=str)


class PipelineStage(ABC):
    """Base dos cinco estágios do pipeline."""

    stage: ClassVar[StageName]
    span_name: ClassVar[str]
    span_kind: ClassVar[SpanKind] = SpanKind.CONSUMER

    def __init__(
        self,
        telemetry: TelemetrySink,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.telemetry = telemetry
        self.config = config or get_pipeline_settings()
        self.app_settings = app_settings or get_settings()

    @property
    def service_name(self) -> str:
        return f"{self.app_settings.service_name_prefix}-{self.stage.service_suffix}"

    def read_envelope(self, raw: Any) -> PipelineEnvelope:
        """
        Lê o envelope de entrada.

        Corpo ilegível não interrompe o pipeline: é substituído por um
        envelope placeholder com o texto original em ``payload.message``.
        """
        try:
            return PipelineEnvelope.from_wire(raw, self.stage.value)
        except PayloadError as e:
            text = raw_text(raw)
            self.report_payload_substitution(e.details["error"], text)
            return PipelineEnvelope.placeholder(text, source=self.stage.value)

    def report_payload_substitution(self, error: str, text: Optional[str]) -> None:
        payload_substitutions_total.labels(stage=self.stage.value).inc()
        log_payload_substituted(stage=self.stage.value, error=error, raw_preview=text)

    @asynccontextmanager
    async def activation(
        self,
        carrier: Any,
        invocation: InvocationContext,
        carrier_source: Optional[str] = None,
        inbound: Optional[PipelineEnvelope] = None,
    ) -> AsyncIterator[StageActivation]:
        """
        Envolve uma invocação: continua o trace, registra erro e fecha o span.

        Exceções levantadas dentro do bloco são registradas uma única vez no
        span ativo e repassadas sem retry. Se o carrier não for aceito, a
        linhagem usa o parentTraceId/parentSpanId do envelope de entrada.
        """
        active = self.telemetry.continue_or_start(
            carrier,
            name=self.span_name,
            kind=self.span_kind,
            source=carrier_source,
        )
        current = StageActivation(
            active=active,
            invocation=invocation,
            started=time.monotonic(),
            parent_trace_id=active.parent_trace_id or (inbound.parent_trace_id if inbound else None),
            parent_span_id=active.parent_span_id or (inbound.parent_span_id if inbound else None),
        )
        set_trace_context(
            trace_id=active.trace_id,
            span_id=active.span_id,
            parent_trace_id=current.parent_trace_id,
            parent_span_id=current.parent_span_id,
        )
        bind_stage_context(self.stage.value, invocation.invocation_id)
        log_stage_started(
            stage=self.stage.value,
            invocation_id=invocation.invocation_id,
            continued=active.continued,
            carrier_source=carrier_source if active.continued else None,
            payload=inbound.payload if inbound is not None else None,
        )

        try:
            yield current
        except Exception as e:
            error_attributes = {
                "pipeline.stage": self.stage.value,
                "service.name": self.service_name,
                "trace_id": active.trace_id,
                "error.type": type(e).__name__,
            }
            if isinstance(e, TransportError):
                error_attributes["transport.operation"] = e.operation
            self.telemetry.record_error(active, e, error_attributes)
            stage_invocations_total.labels(stage=self.stage.value, status="error").inc()
            log_stage_failed(
                stage=self.stage.value,
                error_type=type(e).__name__,
                error_message=str(e),
                duration_ms=current.elapsed_ms,
            )
            raise
        else:
            stage_invocations_total.labels(stage=self.stage.value, status="success").inc()
            log_stage_completed(
                stage=self.stage.value,
                duration_ms=current.elapsed_ms,
                transport_id=current.transport_id,
            )
        finally:
            stage_duration_seconds.labels(stage=self.stage.value).observe(current.elapsed_ms / 1000)
            active.end()
            clear_trace_context()
            clear_stage_context()

    def build_result(
        self,
        current: StageActivation,
        work: Optional[WorkOutcome] = None,
        output: Optional[Mapping[str, Any]] = None,
    ) -> StageResult:
        """Resultado do estágio com os ids do span ativo."""
        merged: dict[str, Any] = dict(work.output) if work else {}
        merged.update(output or {})
        return StageResult(
            trace_id=current.active.trace_id,
            span_id=current.active.span_id,
            parent_trace_id=current.parent_trace_id,
            parent_span_id=current.parent_span_id,
            processing_time=work.duration_ms if work else None,
            output=merged,
        )

    async def handoff(
        self,
        current: StageActivation,
        call: Awaitable[T],
        *,
        operation: str,
        target: Optional[str],
        carrier: Mapping[str, str],
    ) -> T:
        """Chama o transporte downstream com timeout fixo."""
        log_stage_handoff(
            stage=self.stage.value,
            transport=operation,
            target=target,
            carrier_keys=sorted(carrier),
        )
        return await call_with_timeout(
            call,
            stage=self.stage.value,
            operation=operation,
            timeout=self.config.pipeline_handoff_timeout_seconds,
        )

    def record(self, current: StageActivation, attributes: Mapping[str, Any]) -> None:
        """Atributos de correlação do estágio + atributos específicos."""
        active = current.active
        self.telemetry.record_attributes(active, {
            "pipeline.stage": self.stage.value,
            "invocation.id": current.invocation.invocation_id,
            "invocation.function_name": current.invocation.function_name,
            "parent.trace_id": current.parent_trace_id,
            "parent.span_id": current.parent_span_id,
            "trace_id": active.trace_id,
            "service.name": self.service_name,
            "service.version": self.app_settings.app_version,
            **attributes,
        })
