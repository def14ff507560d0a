"""Estágios do pipeline, na ordem de execução."""
from projects.pipeline.stages.base import InvocationContext, PipelineStage
from projects.pipeline.stages.ingress import IngressRequest, IngressResponse, IngressStage
from projects.pipeline.stages.queue_relay import QueueRelayStage
from projects.pipeline.stages.compute import ComputeOutcome, ComputeStage
from projects.pipeline.stages.workflow import WorkflowStepAStage, WorkflowStepBStage

__all__ = [
    # Base
    "InvocationContext",
    "PipelineStage",
    # Estágios
    "IngressStage",
    "IngressRequest",
    "IngressResponse",
    "QueueRelayStage",
    "ComputeStage",
    "ComputeOutcome",
    "WorkflowStepAStage",
    "WorkflowStepBStage",
]
