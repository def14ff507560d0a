"""
Eventos de log estruturado do ciclo de vida dos estágios.

Cada estágio emite logs apenas em pontos fixos: entrada, handoff,
conclusão e erro. Os ids do trace atual são anexados a todos os eventos.
"""
from typing import Optional, List, Dict, Any

from shared.infrastructure.logging.structlog_config import get_logger
from shared.infrastructure.tracing.context import get_trace_context

logger = get_logger("tracing.events")

_SENSITIVE_KEYS = {
    "access_token",
    "token",
    "api_key",
    "authorization",
    "password",
    "secret",
    "license_key",
}

_PREVIEW_CHARS = 500


def _truncate_text(value: str, max_chars: int) -> str:
    """Trunca texto para preview de log."""
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}...[truncated]"


def _is_sensitive_key(key: Any) -> bool:
    """Identifica nomes de chave sensíveis para redaction."""
    key_lower = str(key).lower()
    return key_lower in _SENSITIVE_KEYS or any(marker in key_lower for marker in ("token", "secret", "password"))


def _sanitize_value(value: Any, *, max_chars: int = _PREVIEW_CHARS) -> Any:
    """Sanitiza valor arbitrário recursivamente para log seguro."""
    if isinstance(value, dict):
        return {
            key: "***REDACTED***" if _is_sensitive_key(key) else _sanitize_value(val, max_chars=max_chars)
            for key, val in value.items()
        }

    if isinstance(value, list):
        return [_sanitize_value(item, max_chars=max_chars) for item in value]

    if isinstance(value, tuple):
        return tuple(_sanitize_value(item, max_chars=max_chars) for item in value)

    if isinstance(value, str):
        return _truncate_text(value, max_chars=max_chars)

    return value


# ============================================================================
# Propagação
# ============================================================================

def log_carrier_rejected(
    stage: str,
    reason: str,
    source: Optional[str] = None
):
    """Loga carrier malformado (o estágio segue com trace novo)"""
    logger.warning(
        "propagation_carrier_rejected",
        **get_trace_context(),
        stage=stage,
        reason=reason,
        carrier_source=source
    )


def log_payload_substituted(
    stage: str,
    error: str,
    raw_preview: Optional[str] = None
):
    """Loga substituição de payload ilegível por placeholder"""
    logger.warning(
        "payload_substituted",
        **get_trace_context(),
        stage=stage,
        error=error,
        raw_preview=_truncate_text(raw_preview, _PREVIEW_CHARS) if raw_preview else None
    )


# ============================================================================
# Ciclo de vida do estágio
# ============================================================================

def log_stage_started(
    stage: str,
    invocation_id: Optional[str],
    continued: bool,
    carrier_source: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None
):
    """Loga entrada do estágio com trace atual e trace pai"""
    logger.info(
        "stage_started",
        **get_trace_context(),
        stage=stage,
        invocation_id=invocation_id,
        trace_continued=continued,
        carrier_source=carrier_source,
        payload_preview=_sanitize_value(payload) if payload is not None else None
    )


def log_stage_handoff(
    stage: str,
    transport: str,
    target: Optional[str],
    carrier_keys: List[str]
):
    """Loga handoff para o transporte downstream"""
    logger.info(
        "stage_handoff",
        **get_trace_context(),
        stage=stage,
        transport=transport,
        target=target,
        carrier_keys=carrier_keys
    )


def log_stage_completed(
    stage: str,
    duration_ms: float,
    transport_id: Optional[str] = None
):
    """Loga conclusão do estágio"""
    logger.info(
        "stage_completed",
        **get_trace_context(),
        stage=stage,
        status="success",
        duration_ms=duration_ms,
        transport_id=transport_id
    )


def log_stage_failed(
    stage: str,
    error_type: str,
    error_message: str,
    duration_ms: float
):
    """Loga falha do estágio (a exceção é repassada ao transporte)"""
    logger.error(
        "stage_failed",
        **get_trace_context(),
        stage=stage,
        status="error",
        error_type=error_type,
        error_message=error_message,
        duration_ms=duration_ms
    )


def log_trace_chain(
    chain: List[Dict[str, Any]],
    total_processing_time: float
):
    """Loga a cadeia de traces reconstruída no estágio final"""
    logger.info(
        "trace_chain_built",
        **get_trace_context(),
        trace_chain=chain,
        total_processing_time=total_processing_time
    )
