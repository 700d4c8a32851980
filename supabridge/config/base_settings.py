"""
Configuración base común.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonAppSettings(BaseSettings):
    """Configuración base compartida, cargada desde variables de entorno o ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    service_name: str = Field(default="supabridge", description="Nombre del servicio")
    service_version: str = Field(default="0.1.0", description="Versión del servicio")
    environment: str = Field(default="development", description="Entorno de ejecución")
    log_level: str = Field(default="INFO", description="Nivel de logging")
