"""Shared pytest fixtures: in-memory fakes for the credential provider,
the PostgREST query builder factory and the realtime channel registry.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from supabridge.realtime.protocols import (
    ChannelRegistry,
    CredentialProvider,
    QueryBuilderFactory,
    RealtimeChannel,
)
from supabridge.supabase.client import SupabaseClient


# ======================================================================
# Credential provider
# ======================================================================


class FakeCredentialProvider(CredentialProvider):
    def __init__(self, token: Optional[str] = None):
        self.token = token
        self.closed = False

    @property
    def access_token(self) -> Optional[str]:
        return self.token

    async def close(self) -> None:
        self.closed = True


# ======================================================================
# Query builder
# ======================================================================


class FakeRequest:
    """Records the operation, filters and the request target."""

    def __init__(self, rest: "FakeRestClient", target: str, operation: Optional[str] = None, args: tuple = ()):
        self.rest = rest
        self.target = target
        self.operation = operation
        self.args = args
        self.kwargs: Dict[str, Any] = {}
        self.filters: List[tuple] = []
        self.headers: Dict[str, str] = dict(rest.headers)
        self.sent_headers: Optional[Dict[str, str]] = None

    @property
    def url(self) -> str:
        if self.operation == "rpc":
            return f"{self.rest.rest_url}/rpc/{self.target}"
        return f"{self.rest.rest_url}/{self.target}"

    def _set(self, operation: str, args: tuple, kwargs: Dict[str, Any]) -> "FakeRequest":
        self.operation = operation
        self.args = args
        self.kwargs = kwargs
        return self

    def select(self, *columns: str, **kwargs: Any) -> "FakeRequest":
        return self._set("select", columns, kwargs)

    def insert(self, values: Any, **kwargs: Any) -> "FakeRequest":
        return self._set("insert", (values,), kwargs)

    def update(self, values: Any, **kwargs: Any) -> "FakeRequest":
        return self._set("update", (values,), kwargs)

    def upsert(self, values: Any, **kwargs: Any) -> "FakeRequest":
        return self._set("upsert", (values,), kwargs)

    def delete(self, **kwargs: Any) -> "FakeRequest":
        return self._set("delete", (), kwargs)

    def eq(self, column: str, value: Any) -> "FakeRequest":
        self.filters.append(("eq", column, value))
        return self

    async def execute(self) -> Any:
        factory = self.rest.factory
        self.sent_headers = dict(self.headers)
        factory.executed.append(self)
        if factory.error is not None:
            raise factory.error
        return SimpleNamespace(data=factory.data, count=factory.count)


class FakeRestClient:
    def __init__(self, factory: "FakeQueryBuilderFactory", rest_url: str, schema: str, headers: Dict[str, str]):
        self.factory = factory
        self.rest_url = rest_url
        self.schema = schema
        self.headers = headers

    def from_(self, table: str) -> FakeRequest:
        request = FakeRequest(self, table)
        self.factory.requests.append(request)
        return request

    def rpc(self, fn: str, params: Dict[str, Any], **kwargs: Any) -> FakeRequest:
        request = FakeRequest(self, fn, "rpc", (params,))
        request.kwargs = kwargs
        self.factory.requests.append(request)
        return request


class FakeQueryBuilderFactory(QueryBuilderFactory):
    def __init__(self):
        self.clients: List[FakeRestClient] = []
        self.requests: List[FakeRequest] = []
        self.executed: List[FakeRequest] = []
        self.data: Any = []
        self.count: Optional[int] = None
        self.error: Optional[BaseException] = None

    def create(self, rest_url: str, schema: str, headers: Dict[str, str]) -> FakeRestClient:
        client = FakeRestClient(self, rest_url, schema, headers)
        self.clients.append(client)
        return client


# ======================================================================
# Realtime transport
# ======================================================================


class FakeChannel(RealtimeChannel):
    def __init__(self, registry: "FakeChannelRegistry", topic: str, schema: str, table: Optional[str]):
        self.registry = registry
        self.topic = topic
        self.schema = schema
        self.table = table
        self.join_count = 0
        self.leave_count = 0
        self.message_handlers: List[Any] = []
        self.error_handlers: List[Any] = []
        self.close_handlers: List[Any] = []

    async def join(self) -> None:
        await asyncio.sleep(0)
        if self.registry.join_gate is not None:
            await self.registry.join_gate.wait()
        self.join_count += 1
        if self.registry.join_error is not None:
            raise self.registry.join_error

    async def leave(self) -> None:
        await asyncio.sleep(0)
        if self.registry.leave_error is not None:
            raise self.registry.leave_error
        self.leave_count += 1

    def on_message(self, handler) -> None:
        self.message_handlers.append(handler)

    def on_error(self, handler) -> None:
        self.error_handlers.append(handler)

    def on_close(self, handler) -> None:
        self.close_handlers.append(handler)

    async def emit(self, message: Dict[str, Any]) -> None:
        for handler in self.message_handlers:
            result = handler(message)
            if asyncio.iscoroutine(result):
                await result


class FakeChannelRegistry(ChannelRegistry):
    def __init__(self):
        self.connected = False
        self.connect_count = 0
        self.disconnect_count = 0
        self.channels: List[FakeChannel] = []
        self.removed: List[FakeChannel] = []
        self.connect_error: Optional[BaseException] = None
        self.disconnect_error: Optional[BaseException] = None
        self.join_error: Optional[BaseException] = None
        self.leave_error: Optional[BaseException] = None
        self.join_gate: Optional[asyncio.Event] = None
        self.open_handlers: List[Any] = []
        self.close_handlers: List[Any] = []
        self.error_handlers: List[Any] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        await asyncio.sleep(0)
        self.connect_count += 1
        if self.connect_error is not None:
            for handler in self.error_handlers:
                handler(self.connect_error)
            raise self.connect_error
        self.connected = True
        for handler in self.open_handlers:
            handler()

    async def disconnect(self) -> None:
        await asyncio.sleep(0)
        self.disconnect_count += 1
        if self.disconnect_error is not None:
            raise self.disconnect_error
        self.connected = False
        for handler in self.close_handlers:
            handler()

    def channel(self, topic: str, schema: str, table: Optional[str] = None) -> FakeChannel:
        channel = FakeChannel(self, topic, schema, table)
        self.channels.append(channel)
        return channel

    async def remove(self, channel: RealtimeChannel) -> None:
        self.removed.append(channel)

    def on_open(self, handler) -> None:
        self.open_handlers.append(handler)

    def on_close(self, handler) -> None:
        self.close_handlers.append(handler)

    def on_error(self, handler) -> None:
        self.error_handlers.append(handler)


# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture
def credentials() -> FakeCredentialProvider:
    return FakeCredentialProvider()


@pytest.fixture
def rest_factory() -> FakeQueryBuilderFactory:
    return FakeQueryBuilderFactory()


@pytest.fixture
def registry() -> FakeChannelRegistry:
    return FakeChannelRegistry()


@pytest.fixture
def client(credentials, rest_factory, registry) -> SupabaseClient:
    return SupabaseClient(
        "https://x.test",
        "k1",
        credential_provider=credentials,
        query_builder_factory=rest_factory,
        channel_registry=registry,
    )


def postgres_change(table: str, event: str, record: Optional[dict] = None, old: Optional[dict] = None,
                    schema: str = "public") -> Dict[str, Any]:
    """Build a raw realtime message as the transport delivers it."""
    return {
        "data": {
            "schema": schema,
            "table": table,
            "commit_timestamp": "2026-10-18T10:00:00Z",
            "type": event,
            "record": record or {},
            "old_record": old or {},
            "columns": [],
        },
        "ids": [1],
    }
