"""
Configurações do pipeline.
Referências opacas dos transportes, timeout de handoff, política de carrier e
durações do trabalho simulado.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

CARRIER_SOURCES = ("body", "attributes")


class PipelineSettings(BaseSettings):
    """Configurações dos estágios do pipeline."""

    # Referências dos transportes (resolvidas pela camada de deploy)
    pipeline_queue_ref: str = Field(
        default="",
        validation_alias=AliasChoices("pipeline_queue_ref", "SQS_QUEUE_URL"),
        description="Fila que recebe os envelopes do ingress"
    )
    batch_job_queue: str = Field(
        default="",
        description="Fila de jobs do estágio de computação"
    )
    batch_job_definition: str = Field(
        default="",
        description="Definição do job de computação"
    )
    state_machine_ref: str = Field(
        default="",
        validation_alias=AliasChoices("state_machine_ref", "STATE_MACHINE_ARN"),
        description="State machine com os passos A e B"
    )

    # Handoff
    pipeline_handoff_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout da chamada ao transporte downstream"
    )

    # Ordem de busca do carrier no Queue Relay
    pipeline_carrier_source_order: Annotated[list[str], NoDecode] = Field(
        default=["body", "attributes"],
        description="Fontes do carrier em ordem de preferência (body, attributes)"
    )

    # Trabalho simulado (ms)
    compute_work_ms: float = 3000.0
    workflow_step_a_work_ms: float = 100.0
    workflow_step_b_work_ms: float = 200.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @field_validator("pipeline_carrier_source_order", mode="before")
    @classmethod
    def _split_sources(cls, value):
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("pipeline_carrier_source_order")
    @classmethod
    def _known_sources(cls, value: list[str]) -> list[str]:
        unknown = [source for source in value if source not in CARRIER_SOURCES]
        if unknown:
            raise ValueError(f"Fontes de carrier desconhecidas: {unknown}")
        if not value:
            raise ValueError("Ao menos uma fonte de carrier é necessária")
        return value


@lru_cache()
def get_pipeline_settings() -> PipelineSettings:
    """
    Retorna instância cacheada das configurações do pipeline.
    """
    return PipelineSettings()


# Instância global para imports diretos
pipeline_settings = get_pipeline_settings()
