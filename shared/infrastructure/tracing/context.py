"""
Contexto de trace da invocação atual usando contextvars.

Guarda apenas os identificadores (hex W3C) do span ativo para enriquecer
os logs estruturados; o span em si pertence ao ActiveTrace do estágio.
"""
import contextvars
from typing import Optional, Dict


# Context vars (isoladas por task async)
trace_id_var = contextvars.ContextVar('trace_id', default=None)
span_id_var = contextvars.ContextVar('span_id', default=None)
parent_trace_id_var = contextvars.ContextVar('parent_trace_id', default=None)
parent_span_id_var = contextvars.ContextVar('parent_span_id', default=None)


def set_trace_context(
    trace_id: Optional[str] = None,
    span_id: Optional[str] = None,
    parent_trace_id: Optional[str] = None,
    parent_span_id: Optional[str] = None
) -> None:
    """
    Define contexto de trace atual.

    Args:
        trace_id: ID do trace (pipeline completo)
        span_id: ID do span (invocação do estágio)
        parent_trace_id: ID do trace aceito do estágio anterior
        parent_span_id: ID do span do estágio anterior
    """
    if trace_id is not None:
        trace_id_var.set(trace_id)
    if span_id is not None:
        span_id_var.set(span_id)
    if parent_trace_id is not None:
        parent_trace_id_var.set(parent_trace_id)
    if parent_span_id is not None:
        parent_span_id_var.set(parent_span_id)


def get_trace_context() -> Dict[str, Optional[str]]:
    """
    Retorna contexto de trace atual.

    Returns:
        Dict com trace_id, span_id, parent_trace_id, parent_span_id
    """
    return {
        "trace_id": trace_id_var.get(),
        "span_id": span_id_var.get(),
        "parent_trace_id": parent_trace_id_var.get(),
        "parent_span_id": parent_span_id_var.get(),
    }


def clear_trace_context() -> None:
    """Limpa contexto de trace (ao final de cada invocação)"""
    trace_id_var.set(None)
    span_id_var.set(None)
    parent_trace_id_var.set(None)
    parent_span_id_var.set(None)
