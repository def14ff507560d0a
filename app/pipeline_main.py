"""
Trace Pipeline Ingress - Entry point do estágio HTTP.
Processo FastAPI que recebe requisições e publica envelopes na fila.
"""

import structlog
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import settings
from shared.infrastructure.logging.structlog_config import setup_logging
from shared.infrastructure.tracing.telemetry import build_telemetry
from shared.observability import setup_metrics, shutdown_tracing
from projects.pipeline.api.router import router as pipeline_router
from projects.pipeline.stages import IngressStage
from projects.pipeline.transports.base import QueueTransport
from projects.pipeline.transports.memory import InMemoryQueue


# Configurar logging estruturado
setup_logging(settings.log_level)
logger = structlog.get_logger(__name__)

INGRESS_SERVICE = f"{settings.service_name_prefix}-ingress"


def create_app(queue: Optional[QueueTransport] = None) -> FastAPI:
    """
    Cria o app de ingress.

    Args:
        queue: Transporte de fila fornecido pela camada de deploy. Sem ele,
            os envelopes ficam em uma fila em memória (execução local).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Iniciando Trace Pipeline Ingress",
            version=settings.app_version,
            environment=settings.environment,
        )
        if queue is None:
            logger.warning("Nenhum transporte de fila configurado, usando fila em memória")

        telemetry = build_telemetry(INGRESS_SERVICE, settings.app_version)
        app.state.ingress_stage = IngressStage(telemetry, queue or InMemoryQueue())

        yield

        logger.info("Encerrando Trace Pipeline Ingress")
        shutdown_tracing(telemetry.tracer_provider)

    app = FastAPI(
        title="Trace Pipeline Ingress",
        description="Entrada HTTP do pipeline com propagação de trace distribuído.",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Métricas Prometheus (/metrics)
    setup_metrics(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(pipeline_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.pipeline_main:app",
        host=settings.ingress_host,
        port=settings.ingress_port,
    )
