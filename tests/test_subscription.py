"""Tests for subscription builders, joining and event dispatch."""

from __future__ import annotations

from typing import List

from supabridge import RealtimePayload, SubscriptionState, TransportError
from supabridge.supabase.models import RealtimeEventType, SubscriptionStatus

from conftest import postgres_change


async def test_insert_callback_receives_new_row(client, registry):
    received: List[RealtimePayload] = []

    subscription = await client.from_("todos").on("INSERT", received.append).subscribe()
    channel = registry.channels[-1]

    await channel.emit(postgres_change("todos", "INSERT", record={"id": 1, "task": "buy milk"}))
    await channel.emit(postgres_change("todos", "UPDATE", record={"id": 1, "task": "buy oat milk"}))

    assert subscription.state == SubscriptionState.JOINED
    assert channel.topic == "realtime:public:todos"
    assert channel.table == "todos"
    assert len(received) == 1
    assert received[0].event_type == RealtimeEventType.INSERT
    assert received[0].new == {"id": 1, "task": "buy milk"}
    assert received[0].table == "todos"


async def test_chained_registrations_accumulate_in_order(client, registry):
    calls = []

    subscription = await (
        client.from_("todos")
        .on("INSERT", lambda p: calls.append("first"))
        .on("UPDATE", lambda p: calls.append("update"))
        .on("INSERT", lambda p: calls.append("second"))
        .subscribe()
    )

    assert [event for event, _ in subscription.registrations] == [
        RealtimeEventType.INSERT,
        RealtimeEventType.UPDATE,
        RealtimeEventType.INSERT,
    ]

    await registry.channels[-1].emit(postgres_change("todos", "INSERT", record={"id": 2}))
    assert calls == ["first", "second"]


async def test_builder_is_immutable(client):
    base = client.from_("todos").subscription
    extended = base.on("DELETE", lambda p: None)

    assert base.registrations == ()
    assert len(extended.registrations) == 1
    assert extended is not base


async def test_event_type_is_case_insensitive(client, registry):
    received = []
    await client.from_("todos").on("delete", received.append).subscribe()

    await registry.channels[-1].emit(postgres_change("todos", "DELETE", old={"id": 9}))

    assert received[0].old == {"id": 9}
    assert received[0].new == {}


async def test_wildcard_receives_only_unmatched_events(client, registry):
    calls = []

    await (
        client.from_("todos")
        .on("INSERT", lambda p: calls.append(("insert", p.event_type.value)))
        .on("*", lambda p: calls.append(("catch-all", p.event_type.value)))
        .subscribe()
    )
    channel = registry.channels[-1]

    await channel.emit(postgres_change("todos", "INSERT", record={"id": 1}))
    await channel.emit(postgres_change("todos", "DELETE", old={"id": 1}))

    assert calls == [("insert", "INSERT"), ("catch-all", "DELETE")]


async def test_unmatched_events_are_dropped_without_wildcard(client, registry):
    calls = []
    await client.from_("todos").on("UPDATE", calls.append).subscribe()

    await registry.channels[-1].emit(postgres_change("todos", "INSERT", record={"id": 1}))

    assert calls == []


async def test_wildcard_table_uses_schema_channel(client, registry):
    received = []

    await client.from_("*").on("*", received.append).subscribe()
    channel = registry.channels[-1]
    await channel.emit(postgres_change("profiles", "UPDATE", record={"id": 3}, old={"id": 3}))

    assert channel.topic == "realtime:public"
    assert channel.table is None
    assert received[0].table == "profiles"


async def test_async_callbacks_are_awaited_in_order(client, registry):
    calls = []

    async def first(payload):
        calls.append("first")

    def second(payload):
        calls.append("second")

    await client.from_("todos").on("INSERT", first).on("INSERT", second).subscribe()
    await registry.channels[-1].emit(postgres_change("todos", "INSERT", record={"id": 1}))

    assert calls == ["first", "second"]


async def test_failing_callback_does_not_block_later_callbacks(client, registry):
    calls = []

    def broken(payload):
        raise RuntimeError("boom")

    await client.from_("todos").on("INSERT", broken).on("INSERT", calls.append).subscribe()
    await registry.channels[-1].emit(postgres_change("todos", "INSERT", record={"id": 1}))

    assert len(calls) == 1


async def test_malformed_message_is_dropped(client, registry):
    calls = []
    await client.from_("todos").on("*", calls.append).subscribe()

    await registry.channels[-1].emit({"data": {"table": "todos", "type": "TRUNCATE"}})

    assert calls == []


async def test_status_callback_reports_subscribed(client):
    statuses = []

    await client.from_("todos").on("INSERT", lambda p: None).subscribe(
        lambda status, error: statuses.append((status, error))
    )

    assert statuses == [(SubscriptionStatus.SUBSCRIBED, None)]


async def test_join_failure_closes_subscription(client, registry):
    registry.join_error = ConnectionError("join rejected")
    statuses = []

    subscription = await client.from_("todos").on("INSERT", lambda p: None).subscribe(
        lambda status, error: statuses.append(status)
    )

    assert subscription.is_closed()
    assert isinstance(subscription.error, TransportError)
    assert statuses == [SubscriptionStatus.SUBSCRIPTION_ERROR]
    # still tracked until the caller removes it
    assert client.get_subscriptions() == [subscription]


async def test_connection_failure_closes_subscription_untracked(client, registry):
    registry.connect_error = ConnectionError("socket refused")

    subscription = await client.from_("todos").on("INSERT", lambda p: None).subscribe()

    assert subscription.is_closed()
    assert isinstance(subscription.error, TransportError)
    assert registry.channels == []
    assert client.get_subscriptions() == []


async def test_closed_subscription_ignores_events(client, registry):
    calls = []
    subscription = await client.from_("todos").on("INSERT", calls.append).subscribe()
    channel = registry.channels[-1]

    await client.remove_subscription(subscription)
    await channel.emit(postgres_change("todos", "INSERT", record={"id": 1}))

    assert calls == []


async def test_channel_close_marks_subscription_closed(client, registry):
    statuses = []
    subscription = await client.from_("todos").on("INSERT", lambda p: None).subscribe(
        lambda status, error: statuses.append(status)
    )

    for handler in registry.channels[-1].close_handlers:
        handler()

    assert subscription.state == SubscriptionState.CLOSED
    assert statuses[-1] == SubscriptionStatus.CLOSED
