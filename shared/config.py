"""
Atalho para as configurações globais.
Use shared.infrastructure.config para o módulo completo.
"""
from shared.infrastructure.config.settings import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
