"""
Serialização do carrier nos atributos de transporte e resolução do carrier
de entrada do Queue Relay.

O carrier pode chegar por dois canais: embutido no corpo (envelope) ou nos
atributos da mensagem. A ordem de preferência é configurável
(PIPELINE_CARRIER_SOURCE_ORDER); o padrão tenta o corpo primeiro.
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from shared.core.exceptions import PropagationError
from shared.infrastructure.tracing.events import log_carrier_rejected
from shared.infrastructure.tracing.telemetry import ActiveTrace, Carrier, accept_carrier
from shared.observability.metrics import propagation_failures_total

BODY_SOURCE = "body"
ATTRIBUTES_SOURCE = "attributes"

CARRIER_ATTRIBUTE = "propagationCarrier"
# Nome usado por produtores antigos
LEGACY_CARRIER_ATTRIBUTE = "newrelic"


def encode_carrier(carrier: Mapping[str, str]) -> str:
    return json.dumps(dict(carrier), sort_keys=True)


def decode_carrier(raw: Any) -> Carrier:
    """
    Decodifica um carrier serializado em JSON.

    Raises:
        PropagationError: valor não é JSON de objeto
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if not isinstance(raw, str):
        raise PropagationError(f"carrier serializado deve ser texto, recebido {type(raw).__name__}")
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        raise PropagationError(f"carrier não é JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise PropagationError("carrier JSON não é um objeto")
    return decoded


def carrier_attributes(active: ActiveTrace, carrier: Mapping[str, str]) -> dict[str, str]:
    """Atributos de mensagem que acompanham o envelope na fila."""
    return {
        "traceId": active.trace_id,
        "spanId": active.span_id,
        CARRIER_ATTRIBUTE: encode_carrier(carrier),
    }


def _attribute_string(value: Any) -> Any:
    """Aceita atributo simples ou no formato {"stringValue": ..., "dataType": ...}."""
    if isinstance(value, Mapping):
        for key in ("stringValue", "StringValue"):
            if key in value:
                return value[key]
    return value


@dataclass(frozen=True)
class ResolvedCarrier:
    """Carrier escolhido e o canal de onde veio."""

    carrier: Optional[Any] = None
    source: Optional[str] = None


def _validated(carrier: Any, source: str, stage: str) -> Optional[Any]:
    """Carrier aceito pelo propagador, ou None com warning se for rejeitado."""
    try:
        accept_carrier(carrier)
    except PropagationError as e:
        propagation_failures_total.labels(stage=stage, reason="malformed").inc()
        log_carrier_rejected(stage=stage, reason=e.reason, source=source)
        return None
    return carrier


def _from_attributes(attributes: Mapping[str, Any], stage: str) -> Optional[Carrier]:
    for name in (CARRIER_ATTRIBUTE, LEGACY_CARRIER_ATTRIBUTE):
        if name not in attributes:
            continue
        try:
            carrier = decode_carrier(_attribute_string(attributes[name]))
        except PropagationError as e:
            propagation_failures_total.labels(stage=stage, reason="undecodable_attribute").inc()
            log_carrier_rejected(stage=stage, reason=e.reason, source=ATTRIBUTES_SOURCE)
            continue
        if carrier and _validated(carrier, ATTRIBUTES_SOURCE, stage) is not None:
            return carrier
    return None


def resolve_inbound_carrier(
    body_carrier: Any,
    attributes: Optional[Mapping[str, Any]],
    order: Sequence[str],
    stage: str,
) -> ResolvedCarrier:
    """
    Escolhe o primeiro carrier válido segundo a ordem configurada.

    Um carrier presente mas malformado (atributo que não decodifica ou
    traceparent inválido) é descartado com warning e a busca segue para a
    próxima fonte. Sem nenhuma fonte válida o estágio inicia um trace novo.
    """
    for source in order:
        if source == BODY_SOURCE and body_carrier:
            if _validated(body_carrier, BODY_SOURCE, stage) is not None:
                return ResolvedCarrier(carrier=body_carrier, source=BODY_SOURCE)
        if source == ATTRIBUTES_SOURCE and attributes:
            carrier = _from_attributes(attributes, stage)
            if carrier:
                return ResolvedCarrier(carrier=carrier, source=ATTRIBUTES_SOURCE)
    return ResolvedCarrier()
