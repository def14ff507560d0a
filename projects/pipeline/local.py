"""
Execução do pipeline completo em um único processo.

Liga os cinco estágios por transportes em memória, entregando a saída de
cada hop ao estágio seguinte como o transporte real faria. Usado pelo
comando ``local`` da CLI e pelos testes de ponta a ponta.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from projects.pipeline.config import PipelineSettings, get_pipeline_settings
from projects.pipeline.stages import (
    ComputeStage,
    IngressRequest,
    IngressResponse,
    IngressStage,
    InvocationContext,
    QueueRelayStage,
    WorkflowStepAStage,
    WorkflowStepBStage,
)
from projects.pipeline.transports.memory import InMemoryJobSubmitter, InMemoryQueue, InMemoryWorkflow
from projects.pipeline.work import Work
from shared.config import Settings
from shared.infrastructure.logging.structlog_config import get_logger
from shared.infrastructure.tracing.telemetry import TelemetrySink

logger = get_logger(__name__)


@dataclass(frozen=True)
class LocalRun:
    """Resultado de uma execução local."""

    response: IngressResponse
    final_state: dict[str, Any]


class LocalPipeline:
    """Os cinco estágios ligados por transportes em memória."""

    def __init__(
        self,
        telemetry: TelemetrySink,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
        compute_work: Optional[Work] = None,
        step_a_work: Optional[Work] = None,
        step_b_work: Optional[Work] = None,
    ):
        config = config or get_pipeline_settings()
        self.queue = InMemoryQueue()
        self.jobs = InMemoryJobSubmitter()
        self.workflow = InMemoryWorkflow()

        self.ingress = IngressStage(telemetry, self.queue, config, app_settings)
        self.queue_relay = QueueRelayStage(telemetry, self.jobs, config, app_settings)
        self.compute = ComputeStage(telemetry, self.workflow, compute_work, config, app_settings)
        self.step_a = WorkflowStepAStage(telemetry, step_a_work, config, app_settings)
        self.step_b = WorkflowStepBStage(telemetry, step_b_work, config, app_settings)

    async def run(self, request: IngressRequest, request_id: str = "local-request") -> LocalRun:
        response = await self.ingress.handle(
            request, InvocationContext(request_id, "ingress")
        )

        for message in self.queue.drain():
            await self.queue_relay.handle(
                message, InvocationContext(message.message_id, "queue-relay")
            )

        job = self.jobs.jobs[-1]
        await self.compute.handle(
            job.parameters, InvocationContext(job.handle.job_id, job.handle.job_name)
        )

        execution = self.workflow.executions[-1]
        execution_id = execution.handle.execution_id
        state = await self.step_a.handle(
            json.loads(execution.input_json), InvocationContext(execution_id, "workflow-step-a")
        )
        final_state = await self.step_b.handle(
            state, InvocationContext(execution_id, "workflow-step-b")
        )

        logger.info(
            "Pipeline local concluído",
            trace_id=response.body.get("traceId"),
            final_status=final_state.get("finalStatus"),
        )
        return LocalRun(response=response, final_state=final_state)
