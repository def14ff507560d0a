"""
Trace Pipeline Compute - Entry point do job de computação.

O executor de jobs entrega os parâmetros em ``AWS_BATCH_JOB_PARAMETERS``
(JSON com ``jobData``) e identifica o job por ``AWS_BATCH_JOB_ID`` /
``AWS_BATCH_JOB_NAME``.

Uso:
    python -m app.batch_job
"""

import asyncio
import json
import os
import sys
from typing import Any, Mapping, Optional

import structlog

from shared.config import settings
from shared.core.exceptions import PipelineException
from shared.infrastructure.logging.structlog_config import setup_logging
from shared.infrastructure.tracing.telemetry import TelemetrySink, build_telemetry
from shared.observability import shutdown_tracing
from projects.pipeline.stages import ComputeOutcome, ComputeStage, InvocationContext
from projects.pipeline.transports.base import WorkflowTransport
from projects.pipeline.transports.memory import InMemoryWorkflow

setup_logging(settings.log_level)
logger = structlog.get_logger(__name__)

COMPUTE_SERVICE = f"{settings.service_name_prefix}-compute"

PARAMETERS_ENV = "AWS_BATCH_JOB_PARAMETERS"
JOB_ID_ENV = "AWS_BATCH_JOB_ID"
JOB_NAME_ENV = "AWS_BATCH_JOB_NAME"


def job_parameters(environ: Mapping[str, str]) -> dict[str, Any]:
    """Parâmetros do job; JSON inválido vira ``{}`` (o estágio usa placeholder)."""
    raw = environ.get(PARAMETERS_ENV) or "{}"
    try:
        parameters = json.loads(raw)
    except ValueError as e:
        logger.warning("Parâmetros do job ilegíveis", error=str(e))
        return {}
    if not isinstance(parameters, dict):
        logger.warning("Parâmetros do job não são um objeto JSON", type=type(parameters).__name__)
        return {}
    return parameters


def job_invocation(environ: Mapping[str, str]) -> InvocationContext:
    return InvocationContext(
        invocation_id=environ.get(JOB_ID_ENV, "local-job"),
        function_name=environ.get(JOB_NAME_ENV, "compute"),
    )


async def run_compute_job(
    workflow: WorkflowTransport,
    environ: Mapping[str, str],
    telemetry: TelemetrySink,
) -> ComputeOutcome:
    """Executa o estágio de computação uma vez com os parâmetros do ambiente."""
    stage = ComputeStage(telemetry, workflow)
    return await stage.handle(job_parameters(environ), job_invocation(environ))


def main(workflow: Optional[WorkflowTransport] = None) -> int:
    """
    Args:
        workflow: Transporte de workflow fornecido pela camada de deploy.
            Sem ele, a execução fica registrada em memória.
    """
    if workflow is None:
        logger.warning("Nenhum transporte de workflow configurado, usando workflow em memória")
        workflow = InMemoryWorkflow()

    telemetry = build_telemetry(COMPUTE_SERVICE, settings.app_version)
    try:
        outcome = asyncio.run(run_compute_job(workflow, os.environ, telemetry))
    except PipelineException as e:
        logger.error("Job de computação falhou", error=e.message, details=e.details)
        return 1
    finally:
        shutdown_tracing(telemetry.tracer_provider)

    logger.info(
        "Job de computação concluído",
        trace_id=outcome.trace_id,
        execution_id=outcome.execution_id,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
