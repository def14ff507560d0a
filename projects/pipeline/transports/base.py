"""
Capacidades mínimas consumidas dos transportes externos.

O pipeline não implementa fila, submissão de jobs nem orquestração: depende
apenas de enqueue, submit_job e start_execution. Toda chamada passa por
``call_with_timeout``, que limita o tempo e converte falhas em
TransportError sem retry.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Mapping, Optional, Protocol, TypeVar

from shared.core.exceptions import TransportError, TransportTimeoutError

T = TypeVar("T")

# Parâmetro do job que carrega o envelope serializado
JOB_DATA_PARAMETER = "jobData"


@dataclass(frozen=True)
class QueueMessage:
    """Mensagem entregue pela fila ao Queue Relay."""

    message_id: str
    body: Optional[str]
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QueueMessage":
        """Aceita registros no formato de evento de fila ({messageId, body, messageAttributes})."""
        return cls(
            message_id=str(record.get("messageId") or record.get("message_id") or ""),
            body=record.get("body"),
            attributes=record.get("messageAttributes") or record.get("attributes") or {},
        )


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    job_name: str


@dataclass(frozen=True)
class ExecutionHandle:
    execution_id: str
    start_date: datetime


class QueueTransport(Protocol):
    async def enqueue(self, body: str, attributes: Mapping[str, str]) -> str:
        """Publica a mensagem e retorna o message id."""
        ...


class JobSubmissionTransport(Protocol):
    async def submit_job(
        self,
        name: str,
        queue_ref: str,
        definition_ref: str,
        parameters: Mapping[str, str],
    ) -> JobHandle:
        ...


class WorkflowTransport(Protocol):
    async def start_execution(
        self,
        state_machine_ref: str,
        input_json: str,
        execution_name: str,
    ) -> ExecutionHandle:
        ...


def unique_name(prefix: str) -> str:
    """Nome único para jobs e execuções (prefixo-epoch_ms-sufixo)."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


async def call_with_timeout(
    call: Awaitable[T],
    *,
    stage: str,
    operation: str,
    timeout: float,
) -> T:
    """
    Executa a chamada ao transporte com timeout fixo.

    Raises:
        TransportTimeoutError: timeout excedido
        TransportError: qualquer outra falha do transporte
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransportTimeoutError(stage, operation, timeout) from e
    except TransportError:
        raise
    except Exception as e:
        raise TransportError(stage, operation, f"{type(e).__name__}: {e}") from e
