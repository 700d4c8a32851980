"""
Adaptador del transporte realtime sobre ``realtime.AsyncRealtimeClient``.
Una sola conexión websocket multiplexa todos los canales del cliente.
"""
import asyncio
import logging
from typing import Optional, Dict, Any, List

from realtime import AsyncRealtimeClient, AsyncRealtimeChannel, RealtimeSubscribeStates
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from .protocols import (
    ChannelRegistry, RealtimeChannel, MessageHandler, ErrorHandler, ConnectionHandler
)

TOPIC_PREFIX = "realtime:"


class RealtimeChannelAdapter(RealtimeChannel):
    """
    Canal que escucha todos los cambios de Postgres de un schema o tabla.
    Los mensajes se encolan y se entregan en orden de llegada.
    """

    def __init__(self, channel: AsyncRealtimeChannel, topic: str, schema: str, table: Optional[str]):
        self.topic = topic
        self.schema = schema
        self.table = table
        self._channel = channel
        self._queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._message_handlers: List[MessageHandler] = []
        self._error_handlers: List[ErrorHandler] = []
        self._close_handlers: List[ConnectionHandler] = []
        self._join_future: Optional[asyncio.Future] = None

        if table:
            self._channel.on_postgres_changes("*", self._enqueue, table=table, schema=schema)
        else:
            self._channel.on_postgres_changes("*", self._enqueue, schema=schema)

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def on_close(self, handler: ConnectionHandler) -> None:
        self._close_handlers.append(handler)

    @property
    def consumer(self) -> Optional[asyncio.Task]:
        return self._consumer

    async def join(self) -> None:
        loop = asyncio.get_running_loop()
        self._join_future = loop.create_future()
        self._consumer = asyncio.create_task(self._consume())
        try:
            await self._channel.subscribe(self._on_status)
            await self._join_future
        except BaseException:
            self.stop()
            raise

    async def leave(self) -> None:
        await self._channel.unsubscribe()
        self.stop()

    def stop(self) -> None:
        """Cancela la entrega de mensajes pendientes."""
        if self._consumer and not self._consumer.done():
            self._consumer.cancel()

    def _on_status(self, status: RealtimeSubscribeStates, error: Optional[Exception] = None) -> None:
        future = self._join_future
        if future is not None and not future.done():
            if status == RealtimeSubscribeStates.SUBSCRIBED:
                future.set_result(True)
            else:
                future.set_exception(error or ConnectionError(f"Channel {self.topic}: {status}"))
            return

        if status == RealtimeSubscribeStates.CLOSED:
            for handler in self._close_handlers:
                handler()
        elif status in (RealtimeSubscribeStates.CHANNEL_ERROR, RealtimeSubscribeStates.TIMED_OUT):
            for handler in self._error_handlers:
                handler(error or ConnectionError(f"Channel {self.topic}: {status}"))

    def _enqueue(self, payload: Dict[str, Any]) -> None:
        self._queue.put_nowait(payload)

    async def _consume(self) -> None:
        while True:
            payload = await self._queue.get()
            for handler in self._message_handlers:
                result = handler(payload)
                if asyncio.iscoroutine(result):
                    await result


class RealtimeChannelRegistry(ChannelRegistry):
    """Registro de canales sobre una única conexión ``AsyncRealtimeClient``."""

    def __init__(
        self,
        realtime_url: str,
        api_key: str,
        connect_attempts: int = 3,
        logger: Optional[logging.Logger] = None
    ):
        """
        Inicializa el registro sin abrir la conexión.

        Args:
            realtime_url: Endpoint realtime (``ws(s)://<host>/realtime/v1``)
            api_key: Clave del proyecto, enviada como parámetro ``apikey``
            connect_attempts: Intentos de conexión antes de fallar
            logger: Logger opcional
        """
        self.realtime_url = realtime_url
        self.connect_attempts = connect_attempts
        self.logger = logger or logging.getLogger("supabridge.realtime.registry")
        self._client = AsyncRealtimeClient(realtime_url, token=api_key, params={"apikey": api_key})
        self._channels: Dict[int, RealtimeChannelAdapter] = {}
        self._open_handlers: List[ConnectionHandler] = []
        self._close_handlers: List[ConnectionHandler] = []
        self._error_handlers: List[ErrorHandler] = []

    @property
    def is_connected(self) -> bool:
        return bool(self._client.is_connected)

    @property
    def channels(self) -> List[RealtimeChannelAdapter]:
        return list(self._channels.values())

    async def connect(self) -> None:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.connect_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                reraise=True
            ):
                with attempt:
                    await self._client.connect()
        except Exception as e:
            self.logger.error(f"Realtime connection failed after {self.connect_attempts} attempts: {e}")
            for handler in self._error_handlers:
                handler(e)
            raise

        for handler in self._open_handlers:
            handler()

    async def disconnect(self) -> None:
        try:
            await self._client.close()
        finally:
            for adapter in self._channels.values():
                adapter.stop()
            self._channels.clear()
        for handler in self._close_handlers:
            handler()

    def channel(self, topic: str, schema: str, table: Optional[str] = None) -> RealtimeChannel:
        # AsyncRealtimeClient adds the "realtime:" prefix itself
        sub_topic = topic[len(TOPIC_PREFIX):] if topic.startswith(TOPIC_PREFIX) else topic
        adapter = RealtimeChannelAdapter(self._client.channel(sub_topic), topic, schema, table)
        self._channels[id(adapter)] = adapter
        return adapter

    async def remove(self, channel: RealtimeChannel) -> None:
        adapter = self._channels.pop(id(channel), None)
        if adapter is None:
            return
        adapter.stop()
        # remove_channel() would close the socket on the last channel; the
        # subscription manager owns that decision.
        lib_channels = self._client.channels
        if lib_channels.get(adapter._channel.topic) is adapter._channel:
            del lib_channels[adapter._channel.topic]

    def on_open(self, handler: ConnectionHandler) -> None:
        self._open_handlers.append(handler)

    def on_close(self, handler: ConnectionHandler) -> None:
        self._close_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)
