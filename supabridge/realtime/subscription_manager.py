"""
Manager del ciclo de vida de suscripciones realtime.
Rastrea las suscripciones activas y coordina el teardown de la conexión compartida.
"""
import asyncio
import logging
from typing import Dict, Optional, List, Any
from datetime import datetime, timezone

from ..supabase.models import OpenSubscriptions
from ..supabase.types import SupabaseResponse, TransportError, PartialTeardownError
from .protocols import ChannelRegistry
from .subscription import Subscription


class SubscriptionManager:
    """
    Dueño de la única conexión realtime de un cliente.

    La conexión se abre de forma perezosa con ``ensure_connected()`` y se cierra
    cuando se remueve la última suscripción. Todo acceso al conjunto rastreado
    pasa por ``_lock``.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        namespace: str = "realtime",
        logger: Optional[logging.Logger] = None
    ):
        """
        Inicializa el manager.

        Args:
            registry: Registro de canales (transporte realtime)
            namespace: Namespace para logging
            logger: Logger opcional
        """
        self.registry = registry
        self.namespace = namespace
        self.logger = logger or logging.getLogger(f"supabridge.{namespace}")

        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = asyncio.Lock()
        self._disconnect_count = 0

    async def ensure_connected(self) -> None:
        """
        Abre la conexión compartida si no está abierta. Idempotente.

        Raises:
            TransportError: Si la conexión falla
        """
        async with self._lock:
            await self._ensure_connected_locked()

    async def _ensure_connected_locked(self) -> None:
        if self.registry.is_connected:
            return
        try:
            await self.registry.connect()
        except Exception as e:
            raise TransportError(f"Failed to open realtime connection: {e}", cause=e) from e
        self.logger.debug("Realtime connection opened")

    async def open(self, subscription: Subscription) -> None:
        """
        Conecta si hace falta, rastrea la suscripción y se une a su canal.
        Los fallos quedan en ``subscription.error``.
        """
        async with self._lock:
            try:
                await self._ensure_connected_locked()
            except TransportError as e:
                self.logger.warning(f"Subscription not opened, connection failed: {subscription.topic}")
                subscription.fail(e)
                return
            self._subscriptions[subscription.id] = subscription

        # The join runs outside the lock; the subscription is already tracked so
        # a concurrent removal of another one cannot disconnect under it.
        await subscription.join(self.registry)

    async def remove_subscription(self, subscription: Subscription) -> SupabaseResponse[OpenSubscriptions]:
        """
        Remueve una suscripción y devuelve cuántas quedan abiertas.

        Args:
            subscription: Suscripción a remover

        Returns:
            SupabaseResponse con ``data.open_subscriptions``. Si el leave falla, la
            respuesta es fallida y el conteo no cambia. Si falla la desconexión
            global, ``data`` trae 0 y ``error`` un PartialTeardownError.
        """
        async with self._lock:
            if not subscription.is_closed():
                try:
                    await subscription.leave(self.registry)
                except Exception as e:
                    self.logger.warning(f"Channel leave failed for {subscription.topic}: {e}")
                    return SupabaseResponse[OpenSubscriptions].fail(
                        TransportError(f"Failed to leave channel {subscription.topic}: {e}", cause=e)
                    )
            else:
                # failed join or server-side close: no handshake, but the
                # channel must not stay in the registry
                await subscription.release(self.registry)

            was_tracked = self._subscriptions.pop(subscription.id, None) is not None
            open_subscriptions = len(self._subscriptions)
            data = OpenSubscriptions(open_subscriptions=open_subscriptions)

            if was_tracked and open_subscriptions == 0:
                error = await self._disconnect_locked()
                if error is not None:
                    return SupabaseResponse[OpenSubscriptions].fail(error, data=data)

            return SupabaseResponse[OpenSubscriptions].ok(data)

    async def remove_all_subscriptions(self) -> List[SupabaseResponse[OpenSubscriptions]]:
        """Remueve todas las suscripciones rastreadas; desconecta una sola vez al final."""
        results = []
        for subscription in self.get_subscriptions():
            results.append(await self.remove_subscription(subscription))
        return results

    async def _disconnect_locked(self) -> Optional[PartialTeardownError]:
        self._disconnect_count += 1
        try:
            await self.registry.disconnect()
        except Exception as e:
            self.logger.warning(f"Realtime disconnect failed: {e}")
            return PartialTeardownError(
                f"Channel removed but realtime disconnect failed: {e}",
                cause=e,
                details={"open_subscriptions": 0}
            )
        self.logger.debug("Realtime connection closed, no subscriptions left")
        return None

    async def close(self) -> SupabaseResponse[OpenSubscriptions]:
        """
        Desconexión global: cierra las suscripciones que sigan rastreadas
        (p.ej. tras un leave fallido) y cierra la conexión si sigue abierta.
        """
        async with self._lock:
            for subscription in list(self._subscriptions.values()):
                subscription.mark_closed()
            self._subscriptions.clear()

            data = OpenSubscriptions(open_subscriptions=0)
            if self.registry.is_connected:
                error = await self._disconnect_locked()
                if error is not None:
                    return SupabaseResponse[OpenSubscriptions].fail(error, data=data)
            return SupabaseResponse[OpenSubscriptions].ok(data)

    def get_subscriptions(self) -> List[Subscription]:
        """Copia de las suscripciones rastreadas."""
        return list(self._subscriptions.values())

    def get_stats(self) -> Dict[str, Any]:
        """Obtiene estadísticas de suscripciones."""
        subscriptions = self.get_subscriptions()
        return {
            "namespace": self.namespace,
            "open_subscriptions": len(subscriptions),
            "joined_subscriptions": len([s for s in subscriptions if s.is_joined()]),
            "connected": self.registry.is_connected,
            "disconnects": self._disconnect_count,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
