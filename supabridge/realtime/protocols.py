"""
Protocolos e interfaces para los colaboradores del cliente.
Define contratos que deben implementar los adaptadores de auth, REST y realtime.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Callable, Awaitable, Union


# Type aliases para callbacks
MessageHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[Exception], None]
ConnectionHandler = Callable[[], None]


class CredentialProvider(ABC):
    """Proveedor de la sesión actual (p.ej. GoTrue)."""

    @property
    @abstractmethod
    def access_token(self) -> Optional[str]:
        """
        Token de la sesión vigente en este momento.

        Returns:
            str: access token o None si no hay sesión
        """
        pass

    async def close(self) -> None:
        """Libera recursos del proveedor."""
        return None


class QueryBuilderFactory(ABC):
    """Fábrica de query builders REST (PostgREST)."""

    @abstractmethod
    def create(self, rest_url: str, schema: str, headers: Dict[str, str]) -> Any:
        """
        Crea un query builder sin estado.

        Args:
            rest_url: Endpoint REST (``<url>/rest/v1``)
            schema: Schema activo
            headers: Headers ya calculados para esta llamada

        Returns:
            Objeto con ``from_(table)`` y ``rpc(fn, params)``
        """
        pass


class RealtimeChannel(ABC):
    """Canal con nombre multiplexado sobre la conexión realtime."""

    topic: str

    @abstractmethod
    async def join(self) -> None:
        """
        Se une al canal y espera el acknowledgement.

        Raises:
            Exception: Si el servidor rechaza el join o expira
        """
        pass

    @abstractmethod
    async def leave(self) -> None:
        """
        Abandona el canal y espera el acknowledgement.

        Raises:
            Exception: Si el servidor rechaza el leave
        """
        pass

    @abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Registra el handler de cambios de fila."""
        pass

    @abstractmethod
    def on_error(self, handler: ErrorHandler) -> None:
        """Registra el handler de errores del canal."""
        pass

    @abstractmethod
    def on_close(self, handler: ConnectionHandler) -> None:
        """Registra el handler de cierre del canal."""
        pass


class ChannelRegistry(ABC):
    """Conexión persistente única que multiplexa canales."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Abre la conexión compartida."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Cierra la conexión compartida.

        Raises:
            Exception: Si el cierre falla
        """
        pass

    @abstractmethod
    def channel(self, topic: str, schema: str, table: Optional[str] = None) -> RealtimeChannel:
        """
        Crea un canal para cambios de un schema o de una tabla.

        Args:
            topic: Nombre del canal (``realtime:<schema>[:<table>]``)
            schema: Schema a escuchar
            table: Tabla a escuchar, None para todo el schema
        """
        pass

    @abstractmethod
    async def remove(self, channel: RealtimeChannel) -> None:
        """Quita un canal ya abandonado del registro."""
        pass

    @abstractmethod
    def on_open(self, handler: ConnectionHandler) -> None:
        pass

    @abstractmethod
    def on_close(self, handler: ConnectionHandler) -> None:
        pass

    @abstractmethod
    def on_error(self, handler: ErrorHandler) -> None:
        pass
