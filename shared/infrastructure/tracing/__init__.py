"""Tracing module for distributed observability."""
from .context import (
    set_trace_context,
    get_trace_context,
    clear_trace_context,
)
from .telemetry import (
    ActiveTrace,
    Carrier,
    OpenTelemetrySink,
    TelemetrySink,
    accept_carrier,
    build_telemetry,
)
from .events import (
    log_carrier_rejected,
    log_payload_substituted,
    log_stage_started,
    log_stage_handoff,
    log_stage_completed,
    log_stage_failed,
    log_trace_chain,
)

__all__ = [
    # Context
    "set_trace_context",
    "get_trace_context",
    "clear_trace_context",
    # Telemetry
    "ActiveTrace",
    "Carrier",
    "OpenTelemetrySink",
    "accept_carrier",
    "TelemetrySink",
    "build_telemetry",
    # Events
    "log_carrier_rejected",
    "log_payload_substituted",
    "log_stage_started",
    "log_stage_handoff",
    "log_stage_completed",
    "log_stage_failed",
    "log_trace_chain",
]
