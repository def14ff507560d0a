import pytest
from pydantic import ValidationError

from projects.pipeline.config import PipelineSettings
from shared.config import Settings


def test_defaults():
    config = PipelineSettings()

    assert config.pipeline_handoff_timeout_seconds == 10.0
    assert config.pipeline_carrier_source_order == ["body", "attributes"]
    assert config.compute_work_ms == 3000.0


def test_transport_references_read_legacy_env_names(monkeypatch):
    monkeypatch.setenv("SQS_QUEUE_URL", "https://queue.example/trace")
    monkeypatch.setenv("STATE_MACHINE_ARN", "arn:states:trace")

    config = PipelineSettings()

    assert config.pipeline_queue_ref == "https://queue.example/trace"
    assert config.state_machine_ref == "arn:states:trace"


def test_carrier_source_order_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("PIPELINE_CARRIER_SOURCE_ORDER", "attributes, body")

    assert PipelineSettings().pipeline_carrier_source_order == ["attributes", "body"]


@pytest.mark.parametrize("order", [["headers"], []])
def test_carrier_source_order_rejects_invalid(order):
    with pytest.raises(ValidationError):
        PipelineSettings(pipeline_carrier_source_order=order)


def test_handoff_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        PipelineSettings(pipeline_handoff_timeout_seconds=0)


def test_otlp_headers_only_with_api_key():
    assert Settings(otlp_api_key=None).otlp_headers == ()
    assert Settings(otlp_api_key="key").otlp_headers == (("api-key", "key"),)
