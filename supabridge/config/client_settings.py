"""
Configuración del cliente Supabase desde variables de entorno.
"""
from typing import Dict
from pydantic import Field, AliasChoices

from .base_settings import CommonAppSettings
from ..supabase.types import SupabaseClientOptions


class SupabaseSettings(CommonAppSettings):
    """Configuración específica para el cliente unificado."""

    # ==========================================================================
    # PROJECT
    # ==========================================================================

    supabase_url: str = Field(
        default="",
        description="URL del proyecto Supabase",
        validation_alias=AliasChoices("supabase_url", "SUPABASE_URL")
    )
    supabase_key: str = Field(
        default="",
        description="Clave del proyecto (anon o service)",
        validation_alias=AliasChoices("supabase_anon_key", "SUPABASE_ANON_KEY", "supabase_key", "SUPABASE_KEY")
    )
    supabase_schema: str = Field(default="public", description="Schema expuesto por PostgREST")
    supabase_headers: Dict[str, str] = Field(default_factory=dict, description="Headers extra (JSON)")

    # ==========================================================================
    # AUTH
    # ==========================================================================

    auto_refresh_token: bool = Field(default=True)
    persist_session: bool = Field(default=True)
    detect_session_in_url: bool = Field(default=True)

    # ==========================================================================
    # REALTIME
    # ==========================================================================

    realtime_connect_attempts: int = Field(
        default=3,
        ge=1,
        description="Intentos de conexión del socket realtime"
    )

    def client_options(self) -> SupabaseClientOptions:
        """Opciones del cliente a partir de esta configuración."""
        options = SupabaseClientOptions(
            schema=self.supabase_schema,
            auto_refresh_token=self.auto_refresh_token,
            persist_session=self.persist_session,
            detect_session_in_url=self.detect_session_in_url
        )
        if self.supabase_headers:
            options = options.model_copy(update={"headers": options.merged_headers() | self.supabase_headers})
        return options
