"""
Tipos y excepciones para el cliente Supabase.
"""
from typing import Optional, Dict, Any, TypeVar, Generic
from pydantic import BaseModel, Field

from ..version import __version__


DEFAULT_HEADERS: Dict[str, str] = {"X-Client-Info": f"supabridge-py/{__version__}"}


class SupabaseError(Exception):
    """
    Excepción base para errores de Supabase.
    """
    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(SupabaseError):
    """
    Configuración inválida al construir el cliente (URL o clave ausentes).
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="configuration_error", details=details)


class SupabaseAuthError(SupabaseError):
    """
    Error de autenticación con Supabase.
    """
    pass


class SupabaseValidationError(SupabaseError):
    """
    Error de validación de datos para Supabase.
    """
    pass


class InvalidArgumentError(SupabaseValidationError):
    """
    Argumento inválido: tipo de evento desconocido o nombre de tabla mal formado.
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="invalid_argument", details=details)


class InvalidOperationError(SupabaseValidationError):
    """
    Operación no permitida, p.ej. un select sobre la tabla comodín.
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="invalid_operation", details=details)


class SupabaseConnectionError(SupabaseError):
    """
    Error de conexión con Supabase.
    """
    pass


class TransportError(SupabaseConnectionError):
    """
    Fallo de red en REST/RPC o en join/leave de un canal realtime.
    """
    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        error_code: str = "transport_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.cause = cause


class PartialTeardownError(TransportError):
    """
    El canal se cerró pero la desconexión global falló (o al revés).
    El conteo de suscripciones reportado sigue siendo correcto.
    """
    def __init__(self, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, cause=cause, error_code="partial_teardown", details=details)


T = TypeVar('T')


class SupabaseResponse(BaseModel, Generic[T]):
    """
    Respuesta genérica de Supabase con metadata.
    """
    data: Optional[T] = None
    success: bool = True
    error: Optional[SupabaseError] = None
    error_code: Optional[str] = None
    count: Optional[int] = None
    response_time_ms: Optional[float] = None

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}

    @classmethod
    def ok(cls, data: Any = None, **kwargs: Any) -> "SupabaseResponse":
        return cls(data=data, success=True, **kwargs)

    @classmethod
    def fail(cls, error: SupabaseError, data: Any = None, **kwargs: Any) -> "SupabaseResponse":
        return cls(data=data, success=False, error=error, error_code=error.error_code, **kwargs)


class SupabaseClientOptions(BaseModel):
    """
    Opciones del cliente unificado.

    Attributes:
        schema_name: Schema de Postgres expuesto por PostgREST (alias ``schema``)
        auto_refresh_token: Refrescar el token antes de que expire
        persist_session: Guardar la sesión en el storage del proveedor
        detect_session_in_url: Detectar sesiones OAuth en URLs de callback
        headers: Headers adicionales para cada request
    """
    schema_name: str = Field(default="public", alias="schema", min_length=1)
    auto_refresh_token: bool = True
    persist_session: bool = True
    detect_session_in_url: bool = True
    headers: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    model_config = {"extra": "forbid", "populate_by_name": True}

    def merged_headers(self) -> Dict[str, str]:
        """Headers por defecto con los del usuario por encima."""
        return {**DEFAULT_HEADERS, **self.headers}

