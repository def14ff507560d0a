"""
Configurações globais do pipeline de rastreamento.
Carrega variáveis de ambiente e define configurações compartilhadas.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field


class Settings(BaseSettings):
    """Configurações da aplicação carregadas do ambiente."""

    # Aplicação
    app_name: str = "Trace Pipeline"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"

    # Tracing (OpenTelemetry)
    service_name_prefix: str = Field(
        default="trace-pipeline",
        validation_alias=AliasChoices("service_name_prefix", "NEW_RELIC_APP_NAME"),
        description="Prefixo do service.name de cada estágio"
    )
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = Field(
        default="http://otel-collector:4317",
        description="Endpoint gRPC do OTel Collector"
    )
    otlp_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("otlp_api_key", "NEW_RELIC_LICENSE_KEY"),
        description="Chave enviada no header api-key do exporter"
    )

    # Ingress
    ingress_host: str = "0.0.0.0"
    ingress_port: int = 8080

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def otlp_headers(self) -> tuple[tuple[str, str], ...]:
        """Headers do exporter OTLP (vazio quando não há chave)."""
        if not self.otlp_api_key:
            return ()
        return (("api-key", self.otlp_api_key),)


@lru_cache()
def get_settings() -> Settings:
    """
    Retorna instância cacheada das configurações.
    Use esta função para obter as configurações em qualquer lugar da aplicação.
    """
    return Settings()


# Instância global para imports diretos
settings = get_settings()
