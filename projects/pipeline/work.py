"""
Unidade de trabalho dos estágios Compute e Workflow.

Os estágios só conhecem a interface ``Work``; ``SimulatedWork`` é uma espera
de duração fixa que reporta a duração nominal como tempo de processamento.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from projects.pipeline.domain.envelope import PipelineEnvelope


@dataclass(frozen=True)
class WorkOutcome:
    duration_ms: float
    output: dict[str, Any] = field(default_factory=dict)


class Work(Protocol):
    async def run(self, envelope: PipelineEnvelope) -> WorkOutcome: ...


def matrix_multiplication() -> dict[str, Any]:
    return {
        "result": random.random() * 1000,
        "computation": "matrix_multiplication",
    }


def processed_flag() -> dict[str, Any]:
    return {"processed": True}


class SimulatedWork:
    """Trabalho simulado por uma espera fixa."""

    def __init__(
        self,
        duration_ms: float,
        output_factory: Optional[Callable[[], dict[str, Any]]] = None,
    ):
        self.duration_ms = duration_ms
        self.output_factory = output_factory or processed_flag

    async def run(self, envelope: PipelineEnvelope) -> WorkOutcome:
        await asyncio.sleep(self.duration_ms / 1000)
        return WorkOutcome(duration_ms=self.duration_ms, output=self.output_factory())
