"""Métricas Prometheus dos estágios do pipeline e do app de ingress."""
from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_client import Counter, Histogram


stage_invocations_total = Counter(
    "pipeline_stage_invocations_total",
    "Total de invocações de estágios do pipeline",
    ["stage", "status"],
)
stage_duration_seconds = Histogram(
    "pipeline_stage_duration_seconds",
    "Duração das invocações de estágio em segundos",
    ["stage"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30],
)
propagation_failures_total = Counter(
    "pipeline_propagation_failures_total",
    "Carriers rejeitados (trace reiniciado)",
    ["stage", "reason"],
)
payload_substitutions_total = Counter(
    "pipeline_payload_substitutions_total",
    "Payloads ilegíveis substituídos por placeholder",
    ["stage"],
)


def setup_metrics(app):
    """Configura métricas Prometheus no app FastAPI de ingress.

    Expõe /metrics e instrumenta os endpoints HTTP.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        excluded_handlers=["/metrics", "/health"],
        inprogress_name="http_requests_in_progress",
        inprogress_labels=True,
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, include_in_schema=False, tags=["Observability"])
