"""
Inicialización del módulo de configuración.

Permite importar configuraciones así:
from supabridge.config import CommonAppSettings, SupabaseSettings
"""

from .base_settings import CommonAppSettings
from .client_settings import SupabaseSettings

__all__ = [
    "CommonAppSettings",
    "SupabaseSettings",
]
