"""
Estágio de entrada: recebe a requisição HTTP, inicia (ou continua) o trace e
publica o envelope na fila.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from opentelemetry.trace import SpanKind

from projects.pipeline.carriers import carrier_attributes
from projects.pipeline.config import PipelineSettings
from projects.pipeline.domain.envelope import PipelineEnvelope, StageName
from projects.pipeline.stages.base import InvocationContext, PipelineStage, raw_text
from projects.pipeline.transports.base import QueueTransport
from shared.config import Settings
from shared.infrastructure.tracing.telemetry import TelemetrySink

# Headers W3C que formam o carrier HTTP
CARRIER_HEADERS = frozenset({"traceparent", "tracestate", "baggage"})
HTTP_HEADERS_SOURCE = "http_headers"


@dataclass(frozen=True)
class IngressRequest:
    """Requisição entregue pelo transporte HTTP."""

    body: Optional[Union[str, bytes]]
    headers: Mapping[str, str] = field(default_factory=dict)
    method: str = "POST"
    path: str = "/"


@dataclass(frozen=True)
class IngressResponse:
    status_code: int
    body: dict[str, Any]


def http_carrier(headers: Mapping[str, str]) -> dict[str, str]:
    """Extrai o carrier dos headers HTTP (nomes sem distinção de caixa)."""
    return {
        key.lower(): value
        for key, value in headers.items()
        if key.lower() in CARRIER_HEADERS
    }


class IngressStage(PipelineStage):
    """Estágio 1: HTTP → fila."""

    stage = StageName.INGRESS
    span_name = "ingress/trace-request"
    span_kind = SpanKind.SERVER

    def __init__(
        self,
        telemetry: TelemetrySink,
        queue: QueueTransport,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        super().__init__(telemetry, config, app_settings)
        self.queue = queue

    def parse_payload(self, body: Any) -> dict[str, Any]:
        """
        Interpreta o corpo da requisição.

        Corpo vazio vira ``{}``. Corpo que não é um objeto JSON vira
        ``{"message": <texto original>}``.
        """
        text = raw_text(body)
        if not text:
            return {}
        try:
            parsed = json.loads(text)
        except ValueError as e:
            self.report_payload_substitution(f"JSON inválido: {e}", text)
            return {"message": text}
        if not isinstance(parsed, dict):
            self.report_payload_substitution("esperado objeto JSON", text)
            return {"message": text}
        return parsed

    async def handle(self, request: IngressRequest, invocation: InvocationContext) -> IngressResponse:
        carrier = http_carrier(request.headers)

        async with self.activation(carrier, invocation, HTTP_HEADERS_SOURCE) as current:
            payload = self.parse_payload(request.body)
            envelope = PipelineEnvelope.originate(payload, request_id=invocation.invocation_id)
            result = self.build_result(
                current,
                output={"method": request.method, "path": request.path},
            )

            outbound_carrier = self.telemetry.insert_carrier(current.active)
            envelope = envelope.append_result(self.stage, result, carrier=outbound_carrier)

            message_id = await self.handoff(
                current,
                self.queue.enqueue(
                    envelope.to_json(),
                    carrier_attributes(current.active, outbound_carrier),
                ),
                operation="enqueue",
                target=self.config.pipeline_queue_ref,
                carrier=outbound_carrier,
            )
            current.transport_id = message_id

            self.record(current, {
                "queue.message_id": message_id,
                "queue.ref": self.config.pipeline_queue_ref,
                "http.method": request.method,
                "http.path": request.path,
            })

        return IngressResponse(
            status_code=200,
            body={
                "message": "Request processed successfully",
                "traceId": result.trace_id,
                "messageId": message_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
