"""
Cliente Supabase unificado.
Un solo objeto para CRUD por tabla, RPC y suscripciones realtime.
"""
import logging
from typing import Optional, Dict, Any, List, Union, TYPE_CHECKING

from pydantic import ValidationError

from ..realtime.channel_registry import RealtimeChannelRegistry
from ..realtime.protocols import CredentialProvider, QueryBuilderFactory, ChannelRegistry
from ..realtime.subscription import Subscription
from ..realtime.subscription_manager import SubscriptionManager
from .auth import GoTrueCredentialProvider
from .models import OpenSubscriptions
from .rest import PostgrestQueryBuilderFactory, PendingQuery
from .table import TableHandle
from .types import (
    ConfigurationError, InvalidArgumentError, SupabaseClientOptions, SupabaseResponse
)

if TYPE_CHECKING:
    from ..config.client_settings import SupabaseSettings


class SupabaseClient:
    """
    Fachada sobre auth, PostgREST y realtime:
    - Handles por tabla con REST y suscripciones
    - Headers de credenciales recalculados en cada llamada
    - Teardown idempotente de suscripciones y cierre de la conexión compartida
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        options: Optional[Union[SupabaseClientOptions, Dict[str, Any]]] = None,
        *,
        credential_provider: Optional[CredentialProvider] = None,
        query_builder_factory: Optional[QueryBuilderFactory] = None,
        channel_registry: Optional[ChannelRegistry] = None,
        realtime_connect_attempts: int = 3,
        logger: Optional[logging.Logger] = None
    ):
        """
        Inicializa el cliente. No hace ninguna llamada de red.

        Args:
            supabase_url: URL del proyecto
            supabase_key: Clave del proyecto
            options: SupabaseClientOptions o dict equivalente
            credential_provider: Reemplaza el proveedor GoTrue por defecto
            query_builder_factory: Reemplaza la fábrica PostgREST por defecto
            channel_registry: Reemplaza el transporte realtime por defecto
            realtime_connect_attempts: Intentos de conexión del socket por defecto
            logger: Logger opcional

        Raises:
            ConfigurationError: Si falta la URL o la clave, o las opciones son inválidas
        """
        if not supabase_url:
            raise ConfigurationError("supabase_url is required.")
        if not supabase_key:
            raise ConfigurationError("supabase_key is required.")

        settings = self._parse_options(options)

        self.supabase_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.options = settings
        self.schema = settings.schema_name
        self.headers = settings.merged_headers()

        self.rest_url = f"{self.supabase_url}/rest/v1"
        self.realtime_url = f"{self.supabase_url}/realtime/v1".replace("http", "ws", 1)
        self.auth_url = f"{self.supabase_url}/auth/v1"

        self.logger = logger or logging.getLogger("supabridge.SupabaseClient")
        self._socket_logger = logging.getLogger("supabridge.realtime")

        self.auth = credential_provider or self._init_gotrue_client(settings)
        self.realtime = channel_registry or self._init_realtime_client(realtime_connect_attempts)
        self.query_builder_factory = query_builder_factory or PostgrestQueryBuilderFactory()

        self.realtime.on_open(lambda: self._socket_logger.info("Realtime socket open"))
        self.realtime.on_close(lambda: self._socket_logger.info("Realtime socket closed"))
        self.realtime.on_error(lambda e: self._socket_logger.warning(f"Realtime socket error: {e}"))

        self.subscription_manager = SubscriptionManager(self.realtime, logger=self._socket_logger)

        self.logger.info(f"Supabase client initialized with URL: {self.supabase_url}")

    @staticmethod
    def _parse_options(options: Optional[Union[SupabaseClientOptions, Dict[str, Any]]]) -> SupabaseClientOptions:
        if options is None:
            return SupabaseClientOptions()
        if isinstance(options, SupabaseClientOptions):
            return options
        try:
            return SupabaseClientOptions(**options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid client options: {e}", details={"errors": e.errors()}) from e

    async def __aenter__(self) -> "SupabaseClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # Table Operations
    def from_(self, table_name: str) -> TableHandle:
        """
        Handle para operar sobre una tabla.

        Args:
            table_name: Nombre de la tabla, o ``*`` para suscribirse a todo el schema

        Returns:
            TableHandle independiente en cada llamada

        Raises:
            InvalidArgumentError: Si el nombre está vacío o mal formado
        """
        return TableHandle(self, table_name)

    table = from_

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> PendingQuery:
        """
        Llamada a un stored procedure.

        Args:
            fn: Nombre de la función
            params: Parámetros de la función

        Returns:
            PendingQuery; ``await query.execute()`` devuelve un SupabaseResponse
        """
        if not isinstance(fn, str) or not fn.strip():
            raise InvalidArgumentError("Function name must be a non-empty string", details={"fn": fn})
        rest = self.init_rest_client()
        return PendingQuery(rest.rpc(fn, params or {}, **kwargs), fn, "rpc", self._get_auth_headers)

    # Subscription Lifecycle
    async def remove_subscription(self, subscription: Subscription) -> SupabaseResponse[OpenSubscriptions]:
        """
        Remueve una suscripción activa y devuelve cuántas quedan abiertas.
        Al remover la última se cierra la conexión realtime.

        Args:
            subscription: Suscripción a remover
        """
        return await self.subscription_manager.remove_subscription(subscription)

    async def remove_all_subscriptions(self) -> List[SupabaseResponse[OpenSubscriptions]]:
        """Remueve todas las suscripciones."""
        return await self.subscription_manager.remove_all_subscriptions()

    def get_subscriptions(self) -> List[Subscription]:
        """Copia de todas las suscripciones rastreadas."""
        return self.subscription_manager.get_subscriptions()

    async def aclose(self) -> SupabaseResponse[OpenSubscriptions]:
        """Remueve todas las suscripciones, cierra la conexión y libera el proveedor de auth."""
        await self.remove_all_subscriptions()
        result = await self.subscription_manager.close()
        await self.auth.close()
        self.logger.info("Supabase client closed")
        return result

    # Collaborators
    def init_rest_client(self) -> Any:
        """Query builder nuevo con los headers de credenciales de este momento."""
        return self.query_builder_factory.create(self.rest_url, self.schema, self._get_auth_headers())

    def _init_gotrue_client(self, settings: SupabaseClientOptions) -> GoTrueCredentialProvider:
        return GoTrueCredentialProvider(
            auth_url=self.auth_url,
            supabase_key=self.supabase_key,
            auto_refresh_token=settings.auto_refresh_token,
            persist_session=settings.persist_session,
            detect_session_in_url=settings.detect_session_in_url,
            headers=self.headers
        )

    def _init_realtime_client(self, connect_attempts: int) -> RealtimeChannelRegistry:
        return RealtimeChannelRegistry(
            self.realtime_url,
            self.supabase_key,
            connect_attempts=connect_attempts
        )

    def _get_auth_headers(self) -> Dict[str, str]:
        """
        Headers de una llamada: los por defecto más ``apikey`` y ``Authorization``.
        El bearer es el token de la sesión actual o, sin sesión, la propia clave.
        """
        headers = dict(self.headers)
        auth_bearer = self.auth.access_token or self.supabase_key
        headers["apikey"] = self.supabase_key
        headers["Authorization"] = f"Bearer {auth_bearer}"
        return headers


def create_client(
    supabase_url: str,
    supabase_key: str,
    options: Optional[Union[SupabaseClientOptions, Dict[str, Any]]] = None,
    **kwargs: Any
) -> SupabaseClient:
    """Crea un SupabaseClient."""
    return SupabaseClient(supabase_url, supabase_key, options, **kwargs)


def create_client_from_settings(settings: "SupabaseSettings", **kwargs: Any) -> SupabaseClient:
    """Crea un SupabaseClient desde SupabaseSettings (variables de entorno)."""
    kwargs.setdefault("realtime_connect_attempts", settings.realtime_connect_attempts)
    return SupabaseClient(
        settings.supabase_url,
        settings.supabase_key,
        settings.client_options(),
        **kwargs
    )
