#!/usr/bin/env python3
"""
CLI do pipeline de rastreamento.

Uso:
    trace-pipeline send --url http://localhost:8080/trace --message "Olá"
    trace-pipeline send --url http://localhost:8080/trace --data '{"userId": 1}'
    trace-pipeline test
    trace-pipeline local --fast
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import httpx
from opentelemetry.trace import SpanKind

from projects.pipeline.config import get_pipeline_settings
from projects.pipeline.local import LocalPipeline
from projects.pipeline.stages import IngressRequest
from shared.config import settings
from shared.infrastructure.logging.structlog_config import setup_logging
from shared.infrastructure.tracing.telemetry import OpenTelemetrySink, build_telemetry
from shared.observability import shutdown_tracing

CLI_SERVICE = f"{settings.service_name_prefix}-cli"
DEFAULT_MESSAGE = "Hello from CLI"
REQUEST_TIMEOUT_SECONDS = 30.0


def build_request_data(message: str, data: Optional[str]) -> dict[str, Any]:
    """Corpo enviado ao ingress; ``--data`` inválido é ignorado com aviso."""
    request_data: dict[str, Any] = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "cli",
    }
    if data:
        try:
            extra = json.loads(data)
        except ValueError:
            print(f"JSON inválido em --data, ignorando: {data}", file=sys.stderr)
        else:
            if isinstance(extra, dict):
                request_data.update(extra)
            else:
                print(f"--data deve ser um objeto JSON, ignorando: {data}", file=sys.stderr)
    return request_data


def send(args: argparse.Namespace, telemetry: OpenTelemetrySink) -> int:
    """Envia uma requisição ao ingress com o traceparent do CLI."""
    active = telemetry.continue_or_start(None, "cli-request", kind=SpanKind.CLIENT)
    try:
        print("Iniciando requisição rastreada...")
        print(f"CLI Trace ID: {active.trace_id}")
        print(f"CLI Span ID: {active.span_id}")

        telemetry.record_attributes(active, {
            "service.name": CLI_SERVICE,
            "http.method": "POST",
            "http.url": args.url,
            "cli.message": args.message,
        })

        request_data = build_request_data(args.message, args.data)
        headers = {"Content-Type": "application/json", **telemetry.insert_carrier(active)}

        print("Request data:", json.dumps(request_data, indent=2))
        try:
            response = httpx.post(
                args.url,
                json=request_data,
                headers=headers,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            print(f"Erro ao enviar requisição: {e}", file=sys.stderr)
            if isinstance(e, httpx.HTTPStatusError):
                print(f"Response status: {e.response.status_code}", file=sys.stderr)
                print(f"Response data: {e.response.text}", file=sys.stderr)
            telemetry.record_error(active, e, {"http.url": args.url})
            return 1

        body = response.json()
        telemetry.record_attributes(active, {
            "http.status_code": response.status_code,
            "response.trace_id": body.get("traceId"),
        })

        print(f"Status: {response.status_code}")
        print("Response:", json.dumps(body, indent=2))
        if body.get("traceId"):
            print("\nPropagação do trace concluída")
            print(f"CLI Trace ID: {active.trace_id}")
            print(f"Ingress Trace ID: {body['traceId']}")
        return 0
    finally:
        active.end()


def smoke_test(args: argparse.Namespace, telemetry: OpenTelemetrySink) -> int:
    """Cria um span de teste para validar a configuração de tracing."""
    active = telemetry.continue_or_start(None, "cli-test", kind=SpanKind.INTERNAL)
    try:
        print("Teste de tracing do CLI")
        print(f"Trace ID: {active.trace_id}")
        print(f"Span ID: {active.span_id}")
        telemetry.record_attributes(active, {
            "test.type": "cli-tracing",
            "test.status": "success",
        })
        print("OpenTelemetry configurado")
        return 0
    finally:
        active.end()


def run_local(args: argparse.Namespace, telemetry: OpenTelemetrySink) -> int:
    """Executa os cinco estágios em processo e imprime o envelope final."""
    config = get_pipeline_settings()
    if args.fast:
        config = config.model_copy(update={
            "compute_work_ms": 0.0,
            "workflow_step_a_work_ms": 0.0,
            "workflow_step_b_work_ms": 0.0,
        })

    pipeline = LocalPipeline(telemetry, config=config)
    body = json.dumps(build_request_data(args.message, args.data))
    run = asyncio.run(pipeline.run(IngressRequest(body=body, path="/trace")))

    print(json.dumps(run.response.body, indent=2))
    print(json.dumps(run.final_state, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trace-pipeline",
        description="Pipeline de rastreamento distribuído",
    )
    parser.add_argument("--version", action="version", version=settings.app_version)
    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser("send", help="Envia requisição rastreada ao ingress")
    send_parser.add_argument("-u", "--url", required=True, help="URL do endpoint de ingress")
    send_parser.add_argument("-m", "--message", default=DEFAULT_MESSAGE, help="Mensagem enviada")
    send_parser.add_argument("-d", "--data", help="JSON adicional mesclado ao corpo")
    send_parser.set_defaults(handler=send)

    test_parser = subparsers.add_parser("test", help="Testa a configuração de tracing")
    test_parser.set_defaults(handler=smoke_test)

    local_parser = subparsers.add_parser("local", help="Executa o pipeline completo em memória")
    local_parser.add_argument("-m", "--message", default=DEFAULT_MESSAGE, help="Mensagem enviada")
    local_parser.add_argument("-d", "--data", help="JSON adicional mesclado ao corpo")
    local_parser.add_argument("--fast", action="store_true", help="Zera as durações do trabalho simulado")
    local_parser.set_defaults(handler=run_local)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level)
    telemetry = build_telemetry(CLI_SERVICE, settings.app_version)
    try:
        return args.handler(args, telemetry)
    finally:
        shutdown_tracing(telemetry.tracer_provider)


if __name__ == "__main__":
    sys.exit(main())
