"""
Estágio Compute: job de longa duração que continua o trace, executa a
computação e inicia o workflow.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from projects.pipeline.carriers import BODY_SOURCE
from projects.pipeline.config import PipelineSettings
from projects.pipeline.domain.envelope import StageName
from projects.pipeline.stages.base import InvocationContext, PipelineStage
from projects.pipeline.transports.base import (
    JOB_DATA_PARAMETER,
    WorkflowTransport,
    unique_name,
)
from projects.pipeline.work import SimulatedWork, Work, matrix_multiplication
from shared.config import Settings
from shared.infrastructure.tracing.telemetry import TelemetrySink


@dataclass(frozen=True)
class ComputeOutcome:
    success: bool
    trace_id: str
    execution_id: str


class ComputeStage(PipelineStage):
    """Estágio 3: job de computação → workflow."""

    stage = StageName.COMPUTE
    span_name = "compute/process-data"

    def __init__(
        self,
        telemetry: TelemetrySink,
        workflow: WorkflowTransport,
        work: Optional[Work] = None,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        super().__init__(telemetry, config, app_settings)
        self.workflow = workflow
        self.work = work or SimulatedWork(self.config.compute_work_ms, matrix_multiplication)

    async def handle(
        self,
        parameters: Mapping[str, Any],
        invocation: InvocationContext,
    ) -> ComputeOutcome:
        """
        Args:
            parameters: Parâmetros do job; ``jobData`` traz o envelope em JSON
            invocation: job id e nome do job
        """
        inbound = self.read_envelope(parameters.get(JOB_DATA_PARAMETER))

        async with self.activation(inbound.propagation_carrier, invocation, BODY_SOURCE, inbound) as current:
            work = await self.work.run(inbound)
            result = self.build_result(current, work)

            outbound_carrier = self.telemetry.insert_carrier(current.active)
            outbound = inbound.append_result(self.stage, result, carrier=outbound_carrier)

            execution = await self.handoff(
                current,
                self.workflow.start_execution(
                    self.config.state_machine_ref,
                    outbound.to_json(),
                    unique_name("execution"),
                ),
                operation="start_execution",
                target=self.config.state_machine_ref,
                carrier=outbound_carrier,
            )
            current.transport_id = execution.execution_id

            self.record(current, {
                "batch.job_id": invocation.invocation_id,
                "batch.job_name": invocation.function_name,
                "workflow.execution_id": execution.execution_id,
                "workflow.start_date": execution.start_date.isoformat(),
                "compute.result": work.output.get("result"),
                "compute.processing_time": work.duration_ms,
            })

        return ComputeOutcome(
            success=True,
            trace_id=result.trace_id,
            execution_id=execution.execution_id,
        )
