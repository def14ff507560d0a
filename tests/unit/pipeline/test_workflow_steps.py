"""Testes dos passos A e B da state machine."""
import json

import pytest

from projects.pipeline.domain.envelope import PipelineEnvelope, StageName, StageResult
from projects.pipeline.stages import InvocationContext, WorkflowStepAStage, WorkflowStepBStage
from projects.pipeline.stages.workflow import COMPLETED
from shared.core.exceptions import EnvelopeError

EXECUTION = "state-machine://trace-pipeline:execution-1"


@pytest.fixture
def compute_state(telemetry):
    """Estado de entrada do workflow como o Compute o inicia."""
    active = telemetry.continue_or_start(None, "compute/process-data")
    carrier = telemetry.insert_carrier(active)
    envelope = PipelineEnvelope.originate({"message": "hi"}).append_result(
        StageName.COMPUTE,
        StageResult(trace_id=active.trace_id, span_id=active.span_id, processing_time=3000.0),
        carrier=carrier,
    )
    active.end()
    return active, json.loads(envelope.to_json())


@pytest.mark.asyncio
async def test_step_a_continues_and_emits_new_carrier(
    telemetry, pipeline_config, app_settings, fixed_work, compute_state, span_exporter
):
    upstream, state = compute_state
    stage = WorkflowStepAStage(telemetry, fixed_work(100.0), pipeline_config, app_settings)

    output = await stage.handle(state, InvocationContext(EXECUTION, "workflow-step-a"))

    step_a = output["workflowStepAResult"]
    assert step_a["traceId"] == upstream.trace_id
    assert step_a["parentSpanId"] == upstream.span_id
    assert step_a["processingTime"] == 100.0
    assert step_a["output"] == {"processed": True}
    assert output["computeResult"] == state["computeResult"]
    assert output["propagationCarrier"]["traceparent"].split("-")[2] == step_a["spanId"]

    span = span_exporter.get_finished_spans()[-1]
    assert span.name == "workflow-step-a/process-data"
    assert span.attributes["step.processing_time"] == 100.0


@pytest.mark.asyncio
async def test_step_b_total_is_step_a_plus_own(
    telemetry, pipeline_config, app_settings, fixed_work, compute_state, span_exporter
):
    """Passo A registrou 100 e o passo B leva 200: total 300"""
    _, state = compute_state
    step_a = WorkflowStepAStage(telemetry, fixed_work(100.0), pipeline_config, app_settings)
    step_b = WorkflowStepBStage(telemetry, fixed_work(200.0), pipeline_config, app_settings)

    state = await step_a.handle(state, InvocationContext(EXECUTION, "workflow-step-a"))
    final = await step_b.handle(state, InvocationContext(EXECUTION, "workflow-step-b"))

    assert final["totalProcessingTime"] == 300.0
    assert final["finalStatus"] == COMPLETED
    assert final["propagationCarrier"] == {}
    assert final["workflowStepBResult"]["parentSpanId"] == state["workflowStepAResult"]["spanId"]

    span = span_exporter.get_finished_spans()[-1]
    assert span.name == "workflow-step-b/process-final-data"
    assert span.attributes["total.processing_time"] == 300.0
    assert span.attributes["final.status"] == COMPLETED
    chain = json.loads(span.attributes["trace_chain"])
    assert [link["spanId"] for link in chain] == [link["spanId"] for link in final["traceChain"]]


@pytest.mark.asyncio
async def test_step_b_chain_starts_at_origin_without_ingress(
    telemetry, pipeline_config, app_settings, fixed_work, compute_state
):
    upstream, state = compute_state
    step_b = WorkflowStepBStage(telemetry, fixed_work(200.0), pipeline_config, app_settings)

    final = await step_b.handle(state, InvocationContext(EXECUTION, "workflow-step-b"))

    stages = [link["stage"] for link in final["traceChain"]]
    assert stages == ["compute", "workflow_step_b"]
    assert final["totalProcessingTime"] == 200.0


@pytest.mark.asyncio
async def test_step_a_accepts_json_text_state(telemetry, pipeline_config, app_settings, fixed_work, compute_state):
    upstream, state = compute_state
    stage = WorkflowStepAStage(telemetry, fixed_work(100.0), pipeline_config, app_settings)

    output = await stage.handle(json.dumps(state), InvocationContext(EXECUTION, "workflow-step-a"))

    assert output["workflowStepAResult"]["traceId"] == upstream.trace_id


@pytest.mark.asyncio
async def test_step_b_refuses_to_overwrite_existing_result(
    telemetry, pipeline_config, app_settings, fixed_work, compute_state, span_exporter
):
    """Reentrega do mesmo estado ao passo B não sobrescreve o resultado"""
    _, state = compute_state
    step_b = WorkflowStepBStage(telemetry, fixed_work(200.0), pipeline_config, app_settings)
    final = await step_b.handle(state, InvocationContext(EXECUTION, "workflow-step-b"))

    with pytest.raises(EnvelopeError):
        await step_b.handle(final, InvocationContext(EXECUTION, "workflow-step-b"))

    assert len([e for e in span_exporter.get_finished_spans()[-1].events if e.name == "exception"]) == 1
