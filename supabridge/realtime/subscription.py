"""
Suscripciones a cambios de filas sobre un canal realtime.

``SubscriptionBuilder`` acumula registros ``(evento, callback)`` de forma inmutable;
``subscribe()`` es la llamada terminal que produce una ``Subscription`` activa.
"""
import inspect
import logging
import uuid
from typing import Optional, Any, Callable, Tuple, Union, TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from ..supabase.models import RealtimeEventType, RealtimePayload, SubscriptionState, SubscriptionStatus
from ..supabase.types import InvalidArgumentError, TransportError, SupabaseError
from .protocols import ChannelRegistry, RealtimeChannel

if TYPE_CHECKING:
    from .subscription_manager import SubscriptionManager

logger = logging.getLogger(__name__)

WILDCARD_TABLE = "*"

ChangeCallback = Callable[[RealtimePayload], Any]
StatusCallback = Callable[[SubscriptionStatus, Optional[SupabaseError]], Any]
Registration = Tuple[RealtimeEventType, ChangeCallback]


def channel_topic(schema: str, table: str) -> str:
    """Nombre del canal: uno por tabla, más el comodín para todo el schema."""
    if table == WILDCARD_TABLE:
        return f"realtime:{schema}"
    return f"realtime:{schema}:{table}"


def normalize_event_type(event: Union[RealtimeEventType, str]) -> RealtimeEventType:
    """
    Valida el tipo de evento.

    Raises:
        InvalidArgumentError: Si no es INSERT, UPDATE, DELETE o ``*``
    """
    if isinstance(event, RealtimeEventType):
        return event
    if isinstance(event, str):
        try:
            return RealtimeEventType(event.strip().upper())
        except ValueError:
            pass
    raise InvalidArgumentError(
        f"Invalid event type: {event!r}",
        details={"allowed": [e.value for e in RealtimeEventType]}
    )


class Subscription:
    """
    Interés registrado en los eventos de un canal.
    La posee quien la creó; el manager sólo la referencia para el teardown.
    """

    def __init__(
        self,
        schema: str,
        table: str,
        registrations: Tuple[Registration, ...],
        status_callback: Optional[StatusCallback] = None
    ):
        self.id = str(uuid.uuid4())
        self.schema = schema
        self.table = table
        self.topic = channel_topic(schema, table)
        self.registrations = registrations
        self.state = SubscriptionState.UNJOINED
        self.error: Optional[SupabaseError] = None
        self.channel: Optional[RealtimeChannel] = None
        self._status_callback = status_callback

    def __repr__(self) -> str:
        return f"Subscription(topic={self.topic!r}, state={self.state.value})"

    def is_closed(self) -> bool:
        return self.state == SubscriptionState.CLOSED

    def is_joined(self) -> bool:
        return self.state == SubscriptionState.JOINED

    async def join(self, registry: ChannelRegistry) -> None:
        """
        Crea el canal en el registro y se une a él.
        Un fallo deja la suscripción cerrada con ``error`` asignado; no lanza.
        Si la suscripción se remueve mientras el join está en curso, queda
        cerrada y el canal se abandona al terminar el join.
        """
        self.state = SubscriptionState.JOINING
        table = None if self.table == WILDCARD_TABLE else self.table
        channel = registry.channel(self.topic, schema=self.schema, table=table)
        self.channel = channel
        channel.on_message(self.dispatch)
        channel.on_error(self._on_channel_error)
        channel.on_close(self._on_channel_close)

        try:
            await channel.join()
        except Exception as e:
            if self.is_closed():
                logger.debug(f"Channel join failed after removal: {self.topic} ({e})")
                return
            logger.warning(f"Channel join failed: {self.topic} ({e})")
            self.fail(TransportError(f"Failed to join channel {self.topic}: {e}", cause=e))
            return

        if self.is_closed():
            # removed while joining
            try:
                await channel.leave()
            except Exception as e:
                logger.warning(f"Channel leave after late join failed: {self.topic} ({e})")
            return

        self.state = SubscriptionState.JOINED
        logger.debug(f"Channel joined: {self.topic}")
        self._notify(SubscriptionStatus.SUBSCRIBED, None)

    async def leave(self, registry: ChannelRegistry) -> None:
        """
        Abandona el canal y lo quita del registro.

        Raises:
            Exception: Error del transporte; el estado no cambia
        """
        if self.channel is not None:
            await self.channel.leave()
        await self.release(registry)
        self.mark_closed()

    async def release(self, registry: ChannelRegistry) -> None:
        """Quita el canal del registro, sin handshake. Idempotente."""
        channel, self.channel = self.channel, None
        if channel is not None:
            await registry.remove(channel)

    def fail(self, error: SupabaseError) -> None:
        """Cierra la suscripción guardando el error que lo causó."""
        self.state = SubscriptionState.CLOSED
        self.error = error
        self._notify(SubscriptionStatus.SUBSCRIPTION_ERROR, error)

    def mark_closed(self) -> None:
        if self.state != SubscriptionState.CLOSED:
            self.state = SubscriptionState.CLOSED
            self._notify(SubscriptionStatus.CLOSED, None)

    async def dispatch(self, message: dict) -> None:
        """
        Entrega un mensaje a los callbacks que coinciden, en orden de registro.
        Si ningún callback es del tipo exacto, se usan los registrados con ``*``.
        """
        if self.state == SubscriptionState.CLOSED:
            return

        try:
            payload = RealtimePayload.from_message(message)
        except ValidationError as e:
            logger.warning(f"Dropping malformed realtime message on {self.topic}: {e}")
            return

        callbacks = [cb for event, cb in self.registrations if event == payload.event_type]
        if not callbacks:
            callbacks = [cb for event, cb in self.registrations if event == RealtimeEventType.ALL]

        for callback in callbacks:
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Realtime callback error on {self.topic}: {e}", exc_info=True)

    def _on_channel_error(self, error: Exception) -> None:
        logger.warning(f"Channel error on {self.topic}: {error}")
        self._notify(SubscriptionStatus.SUBSCRIPTION_ERROR, TransportError(str(error), cause=error))

    def _on_channel_close(self) -> None:
        self.mark_closed()

    def _notify(self, status: SubscriptionStatus, error: Optional[SupabaseError]) -> None:
        if self._status_callback is None:
            return
        try:
            self._status_callback(status, error)
        except Exception as e:
            logger.error(f"Subscription status callback error on {self.topic}: {e}")


class SubscriptionBuilder(BaseModel):
    """
    Configuración inmutable de una suscripción.
    Cada ``on()`` devuelve un builder nuevo; ``subscribe()`` la activa.
    """
    schema_name: str = Field(..., alias="schema")
    table: str
    registrations: Tuple[Tuple[RealtimeEventType, Any], ...] = ()
    manager: Any = Field(..., exclude=True, repr=False)

    model_config = {"frozen": True, "arbitrary_types_allowed": True, "populate_by_name": True}

    @property
    def topic(self) -> str:
        return channel_topic(self.schema_name, self.table)

    def on(self, event: Union[RealtimeEventType, str], callback: ChangeCallback) -> "SubscriptionBuilder":
        """
        Agrega un registro ``(evento, callback)``.
        No abre la conexión: la precondición ensure-connected se cumple en
        ``subscribe()``.

        Args:
            event: INSERT, UPDATE, DELETE o ``*``
            callback: Función (sync o async) que recibe un ``RealtimePayload``

        Returns:
            Un builder nuevo con el registro al final

        Raises:
            InvalidArgumentError: Si el evento no es válido o el callback no es invocable
        """
        event_type = normalize_event_type(event)
        if not callable(callback):
            raise InvalidArgumentError("Realtime callback must be callable")
        return self.model_copy(update={"registrations": self.registrations + ((event_type, callback),)})

    async def subscribe(self, callback: Optional[StatusCallback] = None) -> Subscription:
        """
        Llamada terminal: conecta si hace falta, rastrea la suscripción y se une al canal.

        Args:
            callback: Recibe ``(SubscriptionStatus, error)`` en cada cambio de estado

        Returns:
            Subscription: revisar ``state`` y ``error`` para saber si el join funcionó
        """
        subscription = Subscription(
            schema=self.schema_name,
            table=self.table,
            registrations=self.registrations,
            status_callback=callback
        )
        manager: "SubscriptionManager" = self.manager
        await manager.open(subscription)
        return subscription
