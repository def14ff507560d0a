"""
Capacidade de telemetria injetada nos estágios do pipeline.

Os estágios não acessam um tracer global: recebem um ``TelemetrySink`` na
construção e usam apenas quatro operações (continue_or_start,
insert_carrier, record_attributes, record_error). ``OpenTelemetrySink``
implementa essas operações sobre o SDK OpenTelemetry com propagação W3C
TraceContext + Baggage; o carrier é sempre um ``dict[str, str]``, que
qualquer transporte consegue carregar (header, atributo, parâmetro, JSON).
"""
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import (
    Span,
    SpanKind,
    Status,
    StatusCode,
    format_span_id,
    format_trace_id,
)

from shared.core.exceptions import PropagationError
from shared.infrastructure.tracing.events import log_carrier_rejected
from shared.observability.metrics import propagation_failures_total
from shared.observability.tracing import default_propagator, setup_tracing

UNKNOWN = "unknown"

Carrier = dict[str, str]


@dataclass
class ActiveTrace:
    """Span ativo de uma invocação de estágio."""

    name: str
    span: Span
    parent_trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    _ended: bool = field(default=False, repr=False)

    @property
    def trace_id(self) -> str:
        return format_trace_id(self.span.get_span_context().trace_id)

    @property
    def span_id(self) -> str:
        return format_span_id(self.span.get_span_context().span_id)

    @property
    def continued(self) -> bool:
        """True quando o trace veio de um carrier aceito."""
        return self.parent_span_id is not None

    def end(self) -> None:
        if not self._ended:
            self.span.end()
            self._ended = True


class TelemetrySink(Protocol):
    """Operações de tracing consumidas pelos estágios."""

    def continue_or_start(
        self,
        carrier: Optional[Mapping[str, Any]],
        name: str,
        kind: SpanKind = SpanKind.CONSUMER,
        source: Optional[str] = None,
    ) -> ActiveTrace: ...

    def insert_carrier(self, active: ActiveTrace) -> Carrier: ...

    def record_attributes(self, active: ActiveTrace, attributes: Mapping[str, Any]) -> None: ...

    def record_error(
        self,
        active: ActiveTrace,
        error: BaseException,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None: ...


def _attribute_value(value: Any) -> Any:
    """Converte valor arbitrário para um tipo aceito como atributo de span."""
    if value is None:
        return UNKNOWN
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def clean_attributes(attributes: Mapping[str, Any]) -> dict[str, Any]:
    return {key: _attribute_value(value) for key, value in attributes.items()}


def accept_carrier(carrier: Any, propagator: Optional[TextMapPropagator] = None) -> Context:
    """
    Extrai o contexto remoto de um carrier.

    Raises:
        PropagationError: carrier não é um mapa de strings ou não contém
            um traceparent válido
    """
    if not isinstance(carrier, Mapping):
        raise PropagationError(f"carrier deve ser um mapa, recebido {type(carrier).__name__}")

    normalized: Carrier = {}
    for key, value in carrier.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise PropagationError(f"entrada não textual no carrier: {key!r}")
        normalized[key.lower()] = value

    context = (propagator or default_propagator()).extract(normalized)
    span_context = trace.get_current_span(context).get_span_context()
    if not span_context.is_valid:
        raise PropagationError("traceparent ausente ou inválido")
    return context


class OpenTelemetrySink:
    """TelemetrySink sobre o SDK OpenTelemetry."""

    def __init__(
        self,
        tracer_provider: Optional[trace.TracerProvider] = None,
        propagator: Optional[TextMapPropagator] = None,
        instrumentation_name: str = "trace-pipeline",
    ):
        self.tracer_provider = tracer_provider
        self._tracer = trace.get_tracer(instrumentation_name, tracer_provider=tracer_provider)
        self._propagator = propagator or default_propagator()

    def accept_carrier(self, carrier: Any) -> Context:
        return accept_carrier(carrier, self._propagator)

    def continue_or_start(
        self,
        carrier: Optional[Mapping[str, Any]],
        name: str,
        kind: SpanKind = SpanKind.CONSUMER,
        source: Optional[str] = None,
    ) -> ActiveTrace:
        """
        Continua o trace do carrier recebido ou inicia um novo.

        Carrier ausente ou vazio inicia um trace raiz. Carrier malformado
        nunca propaga exceção: gera warning e também inicia um trace raiz.
        """
        parent_context = Context()
        if carrier:
            try:
                parent_context = self.accept_carrier(carrier)
            except PropagationError as e:
                propagation_failures_total.labels(stage=name, reason="malformed").inc()
                log_carrier_rejected(stage=name, reason=e.reason, source=source)

        parent = trace.get_current_span(parent_context).get_span_context()
        span = self._tracer.start_span(name, context=parent_context, kind=kind)

        if parent.is_valid:
            return ActiveTrace(
                name=name,
                span=span,
                parent_trace_id=format_trace_id(parent.trace_id),
                parent_span_id=format_span_id(parent.span_id),
            )
        return ActiveTrace(name=name, span=span)

    def insert_carrier(self, active: ActiveTrace) -> Carrier:
        """Serializa o span ativo do estágio para o próximo hop."""
        carrier: Carrier = {}
        self._propagator.inject(carrier, context=trace.set_span_in_context(active.span))
        return carrier

    def record_attributes(self, active: ActiveTrace, attributes: Mapping[str, Any]) -> None:
        active.span.set_attributes(clean_attributes(attributes))

    def record_error(
        self,
        active: ActiveTrace,
        error: BaseException,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        active.span.record_exception(error, attributes=clean_attributes(attributes or {}))
        active.span.set_status(Status(StatusCode.ERROR, str(error)))


def build_telemetry(service_name: str, service_version: str = "1.0.0") -> OpenTelemetrySink:
    """Configura o tracing do processo e cria o TelemetrySink do estágio.

    Args:
        service_name: service.name do processo (ex: trace-pipeline-compute)
        service_version: Versão do serviço
    """
    provider = setup_tracing(service_name=service_name, service_version=service_version)
    return OpenTelemetrySink(tracer_provider=provider, instrumentation_name=service_name)
