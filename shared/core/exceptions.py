"""
Exceções customizadas do pipeline de rastreamento.

Falhas de propagação e de payload são absorvidas pelos estágios;
falhas de transporte e de envelope abortam a invocação atual.
"""

from typing import Any, Optional


class PipelineException(Exception):
    """Exceção base para erros do pipeline."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PropagationError(PipelineException):
    """Carrier de trace ausente ou malformado."""

    def __init__(self, reason: str, source: Optional[str] = None):
        super().__init__(
            message=f"Carrier de trace rejeitado: {reason}",
            details={"reason": reason, "source": source}
        )
        self.reason = reason
        self.source = source


class PayloadError(PipelineException):
    """Corpo de entrada não pôde ser interpretado."""

    def __init__(self, stage: str, error: str):
        super().__init__(
            message=f"Payload inválido no estágio {stage}: {error}",
            details={"stage": stage, "error": error}
        )
        self.stage = stage


class TransportError(PipelineException):
    """Falha na chamada ao transporte downstream."""

    def __init__(self, stage: str, operation: str, error: str):
        super().__init__(
            message=f"Erro de transporte em {stage}.{operation}: {error}",
            details={"stage": stage, "operation": operation, "error": error}
        )
        self.stage = stage
        self.operation = operation


class TransportTimeoutError(TransportError):
    """Chamada ao transporte excedeu o timeout configurado."""

    def __init__(self, stage: str, operation: str, timeout_seconds: float):
        super().__init__(
            stage=stage,
            operation=operation,
            error=f"timeout após {timeout_seconds}s"
        )
        self.details["timeout_seconds"] = timeout_seconds
        self.timeout_seconds = timeout_seconds


class EnvelopeError(PipelineException):
    """Tentativa de sobrescrever o resultado de um estágio anterior."""

    def __init__(self, stage: str):
        super().__init__(
            message=f"Resultado do estágio {stage} já existe no envelope",
            details={"stage": stage}
        )
        self.stage = stage
