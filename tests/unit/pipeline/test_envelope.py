import json

import pytest

from projects.pipeline.domain.envelope import (
    NO_BODY_MESSAGE,
    PipelineEnvelope,
    StageName,
    StageResult,
)
from shared.core.exceptions import EnvelopeError, PayloadError


def _result(trace_id="a" * 32, span_id="1" * 16, **kwargs):
    return StageResult(trace_id=trace_id, span_id=span_id, **kwargs)


def test_stage_name_derives_slot_and_service_suffix():
    assert StageName.QUEUE_RELAY.result_field == "queue_relay_result"
    assert StageName.WORKFLOW_STEP_A.service_suffix == "workflow-step-a"


def test_originate_serializes_camel_case():
    envelope = PipelineEnvelope.originate({"message": "oi"}, request_id="req-1")

    wire = envelope.to_wire()
    assert wire["payload"] == {"message": "oi"}
    assert wire["source"] == "ingress"
    assert wire["requestId"] == "req-1"
    assert wire["propagationCarrier"] == {}
    assert "ingressResult" not in wire


def test_from_wire_accepts_json_text_and_dict():
    envelope = PipelineEnvelope.originate({"n": 1})

    assert PipelineEnvelope.from_wire(envelope.to_json(), "queue_relay").payload == {"n": 1}
    assert PipelineEnvelope.from_wire(envelope.to_json().encode(), "queue_relay").payload == {"n": 1}
    assert PipelineEnvelope.from_wire(envelope.to_wire(), "queue_relay").payload == {"n": 1}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "42", None])
def test_from_wire_rejects_non_object(raw):
    with pytest.raises(PayloadError) as exc_info:
        PipelineEnvelope.from_wire(raw, "compute")
    assert exc_info.value.details["stage"] == "compute"


def test_from_wire_reads_legacy_carrier_field():
    envelope = PipelineEnvelope.from_wire(
        {"payload": {}, "newRelicDistributedTraceHeaders": {"traceparent": "00-x"}},
        "compute",
    )
    assert envelope.propagation_carrier == {"traceparent": "00-x"}
    assert envelope.to_wire()["propagationCarrier"] == {"traceparent": "00-x"}


def test_unknown_fields_survive_round_trip():
    """Campos de produtores externos são preservados entre hops"""
    envelope = PipelineEnvelope.from_wire({"payload": {}, "customerTier": "gold"}, "compute")

    assert json.loads(envelope.to_json())["customerTier"] == "gold"


def test_placeholder_keeps_raw_text():
    assert PipelineEnvelope.placeholder("texto", "compute").payload == {"message": "texto"}
    assert PipelineEnvelope.placeholder(None, "compute").payload == {"message": NO_BODY_MESSAGE}


def test_append_result_returns_new_envelope():
    envelope = PipelineEnvelope.originate({"message": "oi"})
    result = _result()

    updated = envelope.append_result(StageName.INGRESS, result, carrier={"traceparent": "tp"})

    assert envelope.ingress_result is None
    assert envelope.propagation_carrier == {}
    assert updated.ingress_result == result
    assert updated.parent_trace_id == result.trace_id
    assert updated.parent_span_id == result.span_id
    assert updated.propagation_carrier == {"traceparent": "tp"}


def test_append_result_without_carrier_keeps_previous():
    envelope = PipelineEnvelope.originate({}).append_result(
        StageName.INGRESS, _result(), carrier={"traceparent": "tp"}
    )

    updated = envelope.append_result(StageName.QUEUE_RELAY, _result(span_id="2" * 16))
    assert updated.propagation_carrier == {"traceparent": "tp"}


def test_append_result_refuses_overwrite():
    envelope = PipelineEnvelope.originate({}).append_result(StageName.INGRESS, _result())

    with pytest.raises(EnvelopeError) as exc_info:
        envelope.append_result(StageName.INGRESS, _result(span_id="2" * 16))
    assert exc_info.value.stage == "ingress"


def test_append_only_growth_preserves_earlier_results():
    """Cada hop adiciona um slot e mantém os anteriores idênticos"""
    envelope = PipelineEnvelope.originate({"message": "oi"})
    previous = {}

    for index, stage in enumerate(StageName):
        envelope = PipelineEnvelope.from_wire(
            envelope.append_result(stage, _result(span_id=f"{index:016x}")).to_json(),
            stage.value,
        )
        for earlier_stage, earlier_result in previous.items():
            assert envelope.result_for(earlier_stage) == earlier_result
        previous[stage] = envelope.result_for(stage)

    assert [stage for stage, _ in envelope.results()] == list(StageName)
    assert envelope.payload == {"message": "oi"}


def test_successive_envelopes_do_not_share_mutable_state():
    """Alterar dicts de um envelope não vaza para o antecessor"""
    first = PipelineEnvelope.originate({"message": {"count": 1}}).append_result(
        StageName.INGRESS, _result(output={"items": [1]})
    )
    second = first.append_result(StageName.QUEUE_RELAY, _result(span_id="2" * 16))

    second.payload["message"]["count"] = 2
    second.result_for(StageName.INGRESS).output["items"].append(2)

    assert first.payload == {"message": {"count": 1}}
    assert first.result_for(StageName.INGRESS).output == {"items": [1]}


def test_append_result_sets_terminal_fields():
    envelope = PipelineEnvelope.originate({}).append_result(
        StageName.WORKFLOW_STEP_B,
        _result(processing_time=200.0),
        carrier={},
        final_status="completed",
        total_processing_time=200.0,
    )

    wire = envelope.to_wire()
    assert wire["finalStatus"] == "completed"
    assert wire["totalProcessingTime"] == 200.0
    assert wire["workflowStepBResult"]["processingTime"] == 200.0
    assert wire["propagationCarrier"] == {}
