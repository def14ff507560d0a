"""Transportes em memória para execução local e testes."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from projects.pipeline.transports.base import ExecutionHandle, JobHandle, QueueMessage


class InMemoryQueue:
    """Fila FIFO em memória."""

    def __init__(self):
        self.messages: list[QueueMessage] = []

    async def enqueue(self, body: str, attributes: Mapping[str, str]) -> str:
        message_id = str(uuid.uuid4())
        self.messages.append(
            QueueMessage(message_id=message_id, body=body, attributes=dict(attributes))
        )
        return message_id

    def drain(self) -> list[QueueMessage]:
        messages, self.messages = self.messages, []
        return messages


@dataclass(frozen=True)
class SubmittedJob:
    handle: JobHandle
    queue_ref: str
    definition_ref: str
    parameters: dict[str, str]


class InMemoryJobSubmitter:
    """Registra jobs submetidos sem executá-los."""

    def __init__(self):
        self.jobs: list[SubmittedJob] = []

    async def submit_job(
        self,
        name: str,
        queue_ref: str,
        definition_ref: str,
        parameters: Mapping[str, str],
    ) -> JobHandle:
        handle = JobHandle(job_id=str(uuid.uuid4()), job_name=name)
        self.jobs.append(SubmittedJob(handle, queue_ref, definition_ref, dict(parameters)))
        return handle


@dataclass(frozen=True)
class StartedExecution:
    handle: ExecutionHandle
    state_machine_ref: str
    name: str
    input_json: str


class InMemoryWorkflow:
    """Registra execuções iniciadas sem rodar a state machine."""

    def __init__(self):
        self.executions: list[StartedExecution] = []

    async def start_execution(
        self,
        state_machine_ref: str,
        input_json: str,
        execution_name: str,
    ) -> ExecutionHandle:
        handle = ExecutionHandle(
            execution_id=f"{state_machine_ref or 'local'}:{execution_name}",
            start_date=datetime.now(timezone.utc),
        )
        self.executions.append(
            StartedExecution(handle, state_machine_ref, execution_name, input_json)
        )
        return handle
