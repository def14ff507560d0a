"""Envelope acumulativo trocado entre os estágios do pipeline.

O envelope é imutável: cada estágio produz uma cópia com o seu slot de
resultado preenchido e o carrier do próximo hop. Um slot já preenchido
nunca é sobrescrito. Serialização em camelCase (formato de wire).
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from shared.core.exceptions import EnvelopeError, PayloadError

NO_BODY_MESSAGE = "No body provided"


def to_camel(string: str) -> str:
    """Converte snake_case → camelCase."""
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StageName(str, Enum):
    """Estágios do pipeline, na ordem de execução."""

    INGRESS = "ingress"
    QUEUE_RELAY = "queue_relay"
    COMPUTE = "compute"
    WORKFLOW_STEP_A = "workflow_step_a"
    WORKFLOW_STEP_B = "workflow_step_b"

    @property
    def result_field(self) -> str:
        return f"{self.value}_result"

    @property
    def service_suffix(self) -> str:
        return self.value.replace("_", "-")


PIPELINE_ORDER: tuple[StageName, ...] = tuple(StageName)


class CamelCaseModel(BaseModel):
    """Base imutável que serializa campos em camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class StageResult(CamelCaseModel):
    """Resultado de um estágio, com os ids do seu próprio span."""

    trace_id: str
    span_id: str
    parent_trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    processing_time: Optional[float] = Field(
        None, description="Tempo de trabalho em ms (None para estágios sem trabalho)"
    )
    output: dict[str, Any] = Field(default_factory=dict)


class TraceChainLink(CamelCaseModel):
    """Elo da cadeia de traces reconstruída pelo estágio final."""

    stage: str
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None


class PipelineEnvelope(CamelCaseModel):
    """Payload acumulativo do pipeline."""

    model_config = ConfigDict(extra="allow")

    payload: dict[str, Any] = Field(default_factory=dict)
    source: str = StageName.INGRESS.value
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    # Contexto do estágio que fez o último handoff
    parent_trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None

    ingress_result: Optional[StageResult] = None
    queue_relay_result: Optional[StageResult] = None
    compute_result: Optional[StageResult] = None
    workflow_step_a_result: Optional[StageResult] = None
    workflow_step_b_result: Optional[StageResult] = None

    # Carrier do próximo hop; validado pelo TelemetrySink ao ser aceito
    propagation_carrier: Any = Field(
        default_factory=dict,
        alias="propagationCarrier",
        validation_alias=AliasChoices(
            "propagationCarrier",
            "propagation_carrier",
            "newRelicDistributedTraceHeaders",
        ),
    )

    # Preenchidos apenas pelo estágio final
    final_status: Optional[str] = None
    total_processing_time: Optional[float] = None
    trace_chain: Optional[list[TraceChainLink]] = None

    @classmethod
    def originate(
        cls,
        payload: Mapping[str, Any],
        request_id: Optional[str] = None,
        source: str = StageName.INGRESS.value,
    ) -> "PipelineEnvelope":
        """Cria o envelope inicial a partir dos dados da requisição."""
        return cls(payload=dict(payload), request_id=request_id, source=source)

    @classmethod
    def placeholder(cls, raw: Optional[str], source: str) -> "PipelineEnvelope":
        """Envelope mínimo usado quando o corpo recebido é ilegível."""
        return cls(payload={"message": raw or NO_BODY_MESSAGE}, source=source)

    @classmethod
    def from_wire(cls, data: Any, stage: str) -> "PipelineEnvelope":
        """
        Reconstrói o envelope a partir do formato de wire.

        Args:
            data: JSON (str/bytes) ou dict já decodificado
            stage: Estágio que está lendo (para o erro)

        Raises:
            PayloadError: corpo não é JSON de objeto ou não valida
        """
        if isinstance(data, (str, bytes, bytearray)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise PayloadError(stage, f"JSON inválido: {e}") from e
        if not isinstance(data, dict):
            raise PayloadError(stage, f"esperado objeto JSON, recebido {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PayloadError(stage, str(e)) from e

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire())

    def result_for(self, stage: StageName) -> Optional[StageResult]:
        return getattr(self, stage.result_field)

    def results(self) -> list[tuple[StageName, StageResult]]:
        """Resultados presentes, na ordem do pipeline."""
        return [
            (stage, result)
            for stage in PIPELINE_ORDER
            if (result := self.result_for(stage)) is not None
        ]

    def append_result(
        self,
        stage: StageName,
        result: StageResult,
        carrier: Optional[Mapping[str, str]] = None,
        **terminal_fields: Any,
    ) -> "PipelineEnvelope":
        """
        Retorna novo envelope com o resultado do estágio anexado.

        O contexto do estágio (trace_id/span_id do resultado) passa a ser o
        parentTraceId/parentSpanId do envelope. O carrier, quando informado,
        substitui o do hop anterior.

        Raises:
            EnvelopeError: o slot do estágio já está preenchido
        """
        if self.result_for(stage) is not None:
            raise EnvelopeError(stage.value)

        update: dict[str, Any] = {
            stage.result_field: result,
            "parent_trace_id": result.trace_id,
            "parent_span_id": result.span_id,
        }
        if carrier is not None:
            update["propagation_carrier"] = dict(carrier)
        update.update(terminal_fields)
        return self.model_copy(update=update, deep=True)
