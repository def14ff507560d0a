"""
Estágio Queue Relay: ativado por mensagem da fila, continua o trace e
submete o job de computação.
"""

from typing import Any, Iterable, Mapping, Optional, Union

from projects.pipeline.carriers import resolve_inbound_carrier
from projects.pipeline.config import PipelineSettings
from projects.pipeline.domain.envelope import StageName
from projects.pipeline.stages.base import InvocationContext, PipelineStage
from projects.pipeline.transports.base import (
    JOB_DATA_PARAMETER,
    JobHandle,
    JobSubmissionTransport,
    QueueMessage,
    unique_name,
)
from shared.config import Settings
from shared.infrastructure.tracing.telemetry import TelemetrySink


class QueueRelayStage(PipelineStage):
    """Estágio 2: fila → submissão de job."""

    stage = StageName.QUEUE_RELAY
    span_name = "queue-relay/process-message"

    def __init__(
        self,
        telemetry: TelemetrySink,
        jobs: JobSubmissionTransport,
        config: Optional[PipelineSettings] = None,
        app_settings: Optional[Settings] = None,
    ):
        super().__init__(telemetry, config, app_settings)
        self.jobs = jobs

    async def handle_batch(
        self,
        records: Iterable[Union[QueueMessage, Mapping[str, Any]]],
        invocation: InvocationContext,
    ) -> list[JobHandle]:
        """Processa um lote na ordem recebida; a primeira falha interrompe o lote."""
        handles = []
        for record in records:
            message = record if isinstance(record, QueueMessage) else QueueMessage.from_record(record)
            handles.append(await self.handle(message, invocation.for_message(message.message_id)))
        return handles

    async def handle(self, message: QueueMessage, invocation: InvocationContext) -> JobHandle:
        inbound = self.read_envelope(message.body)
        resolved = resolve_inbound_carrier(
            inbound.propagation_carrier,
            message.attributes,
            self.config.pipeline_carrier_source_order,
            self.stage.value,
        )

        async with self.activation(resolved.carrier, invocation, resolved.source, inbound) as current:
            result = self.build_result(current, output={"messageId": message.message_id})

            outbound_carrier = self.telemetry.insert_carrier(current.active)
            outbound = inbound.append_result(self.stage, result, carrier=outbound_carrier)

            job_name = unique_name("trace-job")
            handle = await self.handoff(
                current,
                self.jobs.submit_job(
                    job_name,
                    self.config.batch_job_queue,
                    self.config.batch_job_definition,
                    {JOB_DATA_PARAMETER: outbound.to_json()},
                ),
                operation="submit_job",
                target=self.config.batch_job_queue,
                carrier=outbound_carrier,
            )
            current.transport_id = handle.job_id

            self.record(current, {
                "queue.message_id": message.message_id,
                "batch.job_id": handle.job_id,
                "batch.job_name": handle.job_name,
                "batch.queue": self.config.batch_job_queue,
                "carrier.source": resolved.source,
            })

        return handle
