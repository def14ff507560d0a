"""
Agregação terminal: cadeia de traces e tempo total de processamento.

Leitura pura do envelope; nenhum id novo é gerado aqui.
"""

from typing import Optional

from projects.pipeline.domain.envelope import (
    PipelineEnvelope,
    StageName,
    StageResult,
    TraceChainLink,
)

ORIGIN_LINK = "origin"

# Estágios cujo tempo de trabalho compõe o total do workflow
WORKFLOW_STAGES = frozenset({StageName.WORKFLOW_STEP_A, StageName.WORKFLOW_STEP_B})


def _collect(
    envelope: PipelineEnvelope,
    own: Optional[tuple[StageName, StageResult]],
) -> list[tuple[StageName, StageResult]]:
    results = envelope.results()
    if own is not None:
        results.append(own)
    return results


def build_trace_chain(
    envelope: PipelineEnvelope,
    own: Optional[tuple[StageName, StageResult]] = None,
) -> list[TraceChainLink]:
    """
    Monta a cadeia ordenada (estágio → trace) a partir dos resultados.

    Quando o envelope não passou pelo ingress deste pipeline, o contexto
    pai do primeiro resultado vira o elo "origin".

    Args:
        envelope: Envelope recebido pelo estágio final
        own: Resultado do próprio estágio final, ainda não anexado
    """
    results = _collect(envelope, own)
    chain: list[TraceChainLink] = []

    if results and results[0][0] is not StageName.INGRESS:
        first = results[0][1]
        if first.parent_trace_id:
            chain.append(TraceChainLink(
                stage=ORIGIN_LINK,
                trace_id=first.parent_trace_id,
                span_id=first.parent_span_id,
            ))

    for stage, result in results:
        chain.append(TraceChainLink(
            stage=stage.value,
            trace_id=result.trace_id,
            span_id=result.span_id,
            parent_span_id=result.parent_span_id,
        ))
    return chain


def total_processing_time(
    envelope: PipelineEnvelope,
    own: Optional[tuple[StageName, StageResult]] = None,
) -> float:
    """Soma dos tempos de processamento dos passos A e B do workflow."""
    return sum(
        result.processing_time
        for stage, result in _collect(envelope, own)
        if stage in WORKFLOW_STAGES and result.processing_time is not None
    )
