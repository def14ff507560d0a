"""Endpoints HTTP do estágio de ingress."""

import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from projects.pipeline.stages import IngressRequest, IngressStage, InvocationContext
from shared.core.exceptions import PipelineException
from shared.infrastructure.logging.structlog_config import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_ingress_stage(request: Request) -> IngressStage:
    """Estágio de ingress criado no lifespan do app."""
    return request.app.state.ingress_stage


@router.post("/trace", tags=["Pipeline"])
async def trace_request(
    request: Request,
    stage: IngressStage = Depends(get_ingress_stage),
):
    """Recebe a requisição e publica o envelope na fila."""
    invocation = InvocationContext(
        invocation_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        function_name="ingress",
    )
    ingress_request = IngressRequest(
        body=await request.body(),
        headers=dict(request.headers),
        method=request.method,
        path=request.url.path,
    )

    try:
        response = await stage.handle(ingress_request, invocation)
    except PipelineException as e:
        logger.error("Falha no ingress", error=e.message, details=e.details)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": e.message},
        )

    return JSONResponse(status_code=response.status_code, content=response.body)


@router.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}
