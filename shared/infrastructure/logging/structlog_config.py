"""
Configuração de logging estruturado com structlog.
"""

import logging
import sys
from typing import Optional

import structlog


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configura logging estruturado para os estágios do pipeline.

    Args:
        log_level: Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    # Exporter gRPC e cliente HTTP são verbosos em INFO
    for noisy_logger in ("httpx", "httpcore", "grpc", "opentelemetry.exporter"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if log_level.upper() == "DEBUG"
            else structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Obtém um logger configurado.

    Args:
        name: Nome do logger (geralmente __name__)

    Returns:
        Logger estruturado
    """
    return structlog.get_logger(name)


def bind_stage_context(stage: str, invocation_id: Optional[str] = None) -> None:
    """
    Vincula estágio e invocação a todos os logs da execução atual.

    Args:
        stage: Nome do estágio do pipeline
        invocation_id: ID da invocação (request id, job id)
    """
    structlog.contextvars.bind_contextvars(
        stage=stage,
        invocation_id=invocation_id,
    )


def clear_stage_context() -> None:
    """Remove o contexto de estágio vinculado aos logs."""
    structlog.contextvars.unbind_contextvars("stage", "invocation_id")
