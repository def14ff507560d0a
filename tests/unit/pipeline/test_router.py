"""Testes dos endpoints HTTP do ingress.

O app é iniciado pelo lifespan real; o estágio de ingress é trocado por um
com telemetria em memória para inspecionar os spans.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app.pipeline_main import app
from projects.pipeline.stages import IngressStage
from projects.pipeline.transports.memory import InMemoryQueue

CLIENT_TRACEPARENT = "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"


class FailingQueue:
    async def enqueue(self, body, attributes):
        raise ConnectionError("fila indisponível")


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def queue(client, telemetry, pipeline_config, app_settings):
    queue = InMemoryQueue()
    app.state.ingress_stage = IngressStage(telemetry, queue, pipeline_config, app_settings)
    return queue


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_creates_ingress_stage(client):
    assert isinstance(app.state.ingress_stage, IngressStage)


def test_trace_request_enqueues_envelope(client, queue):
    response = client.post("/trace", json={"message": "hi"}, headers={"x-request-id": "req-42"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Request processed successfully"
    assert len(body["traceId"]) == 32

    envelope = json.loads(queue.messages[0].body)
    assert envelope["requestId"] == "req-42"
    assert envelope["payload"] == {"message": "hi"}
    assert envelope["ingressResult"]["output"] == {"method": "POST", "path": "/trace"}


def test_trace_request_continues_traceparent_header(client, queue):
    response = client.post("/trace", content="{}", headers={"traceparent": CLIENT_TRACEPARENT})

    assert response.json()["traceId"] == "0af7651916cd43dd8448eb211c80319c"


def test_trace_request_with_plain_text_body(client, queue):
    response = client.post("/trace", content="olá", headers={"content-type": "text/plain"})

    assert response.status_code == 200
    assert json.loads(queue.messages[0].body)["payload"] == {"message": "olá"}


def test_transport_failure_returns_500(client, telemetry, pipeline_config, app_settings):
    app.state.ingress_stage = IngressStage(telemetry, FailingQueue(), pipeline_config, app_settings)

    response = client.post("/trace", json={"message": "hi"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal server error"
    assert "enqueue" in body["message"]


def test_metrics_endpoint(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "pipeline_stage_invocations_total" in response.text
