"""
Passos A e B da state machine.

O passo A processa e devolve o estado com um carrier novo; o passo B
continua a partir do A, finaliza o resultado e materializa a cadeia de
traces. A orquestração entre os dois passos é do transporte de workflow.
"""

from typing import Any, Mapping, Optional, Union

from projects.pipeline.carriers import BODY_SOURCE
from projects.pipeline.config import PipelineSettings
from projects.pipeline.domain.envelope import StageName
from projects.pipeline.domain.lineage import build_trace_chain, total_processing_time
from projects.pipeline.stages.base import InvocationContext, PipelineStage
from projects.pipeline.work import SimulatedWork, Work
from shared.config import Settings
from shared.infrastructure.tracing.events import log_trace_chain
from shared.infrastructure.tracing.telemetry import TelemetrySink

COMPLETED = "completed"

WorkflowState = Union[Mapping[str, Any], str]


class WorkflowStepAStage(PipelineStage):
    """Estágio 4: primeiro passo, emite resultado parcial."""

    stage = StageName.WORKFLOW_STEP_A
    span_name = "workflow-step-a/process-data"

    def __init__(
        self,
        telemetry: TelemetrySink,
        work: Optional[Work] = None,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        super().__init__(telemetry, config, app_settings)
        self.work = work or SimulatedWork(self.config.workflow_step_a_work_ms)

    async def handle(self, state: WorkflowState, invocation: InvocationContext) -> dict[str, Any]:
        inbound = self.read_envelope(state)

        async with self.activation(inbound.propagation_carrier, invocation, BODY_SOURCE, inbound) as current:
            work = await self.work.run(inbound)
            result = self.build_result(current, work)
            self.record(current, {
                "step.function": self.stage.value,
                "step.processing_time": work.duration_ms,
            })

            outbound_carrier = self.telemetry.insert_carrier(current.active)
            outbound = inbound.append_result(self.stage, result, carrier=outbound_carrier)

        return outbound.to_wire()


class WorkflowStepBStage(PipelineStage):
    """Estágio 5: passo final, agrega a linhagem completa."""

    stage = StageName.WORKFLOW_STEP_B
    span_name = "workflow-step-b/process-final-data"

    def __init__(
        self,
        telemetry: TelemetrySink,
        work: Optional[Work] = None,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        super().__init__(telemetry, config, app_settings)
        self.work = work or SimulatedWork(self.config.workflow_step_b_work_ms)

    async def handle(self, state: WorkflowState, invocation: InvocationContext) -> dict[str, Any]:
        inbound = self.read_envelope(state)

        async with self.activation(inbound.propagation_carrier, invocation, BODY_SOURCE, inbound) as current:
            work = await self.work.run(inbound)
            result = self.build_result(current, work)

            own = (self.stage, result)
            chain = build_trace_chain(inbound, own)
            total = total_processing_time(inbound, own)
            chain_wire = [link.model_dump(by_alias=True) for link in chain]

            # Estágio terminal: não há próximo hop, o carrier é esvaziado
            outbound = inbound.append_result(
                self.stage,
                result,
                carrier={},
                final_status=COMPLETED,
                total_processing_time=total,
                trace_chain=chain,
            )

            log_trace_chain(chain_wire, total)
            self.record(current, {
                "step.function": self.stage.value,
                "final.status": COMPLETED,
                "total.processing_time": total,
                "trace_chain": chain_wire,
            })

        return outbound.to_wire()
