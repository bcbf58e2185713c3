"""Tests for the reminder store."""

import asyncio
from datetime import timedelta

import pytest
from conftest import NOW, make_new

from duebell.db.models import Contact
from duebell.errors import ReminderNotFound, StoreError


async def test_create_sets_scheduled_and_timestamps(store):
    reminder_id = await store.create(
        make_new(description="Flat 4B", priority="High", document_id="fin-1"), now=NOW
    )

    reminder = await store.get(reminder_id)
    assert reminder is not None
    assert reminder.status == "scheduled"
    assert reminder.created_at == NOW
    assert reminder.updated_at == NOW
    assert reminder.schedule.date_time == NOW
    assert reminder.channel == ("push",)
    assert reminder.priority == "High"
    assert reminder.document_id == "fin-1"


async def test_create_assigns_distinct_ids(store):
    first = await store.create(make_new(), now=NOW)
    second = await store.create(make_new(), now=NOW)
    assert first != second


async def test_query_due_scheduled_filters(store):
    """Only this user's scheduled reminders at or before now come back."""
    due = await store.create(make_new(at=NOW - timedelta(minutes=1)), now=NOW)
    boundary = await store.create(make_new(at=NOW), now=NOW)
    await store.create(make_new(at=NOW + timedelta(minutes=1)), now=NOW)
    await store.create(make_new(user_id="user-2", at=NOW - timedelta(hours=1)), now=NOW)
    sent = await store.create(make_new(at=NOW - timedelta(hours=1)), now=NOW)
    await store.update_status(sent, "sent", NOW)

    results = await store.query_due_scheduled("user-1", NOW)

    assert {r.id for r in results} == {due, boundary}


async def test_update_status_is_idempotent(store):
    """Second write to the same status is a silent no-op."""
    reminder_id = await store.create(make_new(), now=NOW)

    assert await store.update_status(reminder_id, "sent", NOW + timedelta(seconds=1)) is True
    assert await store.update_status(reminder_id, "sent", NOW + timedelta(seconds=2)) is False

    reminder = await store.get(reminder_id)
    assert reminder.status == "sent"
    assert reminder.updated_at == NOW + timedelta(seconds=1)


async def test_concurrent_update_status_changes_once(store):
    reminder_id = await store.create(make_new(), now=NOW)

    results = await asyncio.gather(
        *(store.update_status(reminder_id, "sent", NOW) for _ in range(5))
    )

    assert results.count(True) == 1


async def test_update_status_unknown_id(store):
    with pytest.raises(ReminderNotFound):
        await store.update_status("missing", "sent", NOW)


async def test_update_status_rejects_unknown_status(store):
    reminder_id = await store.create(make_new(), now=NOW)
    with pytest.raises(ValueError):
        await store.update_status(reminder_id, "archived", NOW)


async def test_transition_respects_allowed_states(store):
    reminder_id = await store.create(make_new(), now=NOW)
    await store.update_status(reminder_id, "cancelled", NOW)

    moved = await store.transition(reminder_id, ["scheduled", "sent"], "scheduled", NOW)

    assert moved is False
    assert (await store.get(reminder_id)).status == "cancelled"


async def test_transition_rewrites_schedule(store):
    reminder_id = await store.create(make_new(), now=NOW)
    await store.update_status(reminder_id, "sent", NOW)
    later = NOW + timedelta(days=1)

    moved = await store.transition(
        reminder_id, ["scheduled", "sent"], "scheduled", NOW, date_time=later
    )

    reminder = await store.get(reminder_id)
    assert moved is True
    assert reminder.status == "scheduled"
    assert reminder.schedule.date_time == later


async def test_list_by_user_orders_by_schedule(store):
    late = await store.create(make_new(at=NOW + timedelta(hours=2)), now=NOW)
    early = await store.create(make_new(at=NOW + timedelta(hours=1)), now=NOW)

    reminders = await store.list_by_user("user-1")

    assert [r.id for r in reminders] == [early, late]


async def test_delete(store):
    reminder_id = await store.create(make_new(), now=NOW)
    await store.delete(reminder_id)

    assert await store.get(reminder_id) is None
    with pytest.raises(ReminderNotFound):
        await store.delete(reminder_id)


async def test_driver_errors_become_store_errors(store):
    await store.close()
    with pytest.raises(StoreError):
        await store.query_due_scheduled("user-1", NOW)


async def test_contacts(store):
    contact = await store.get_contact("user-1")
    assert contact.email == "user@example.com"
    assert contact.push_enabled is True

    await store.upsert_contact(
        Contact(user_id="user-1", email="new@example.com", telegram_chat_id=1001, push_enabled=False)
    )

    updated = await store.get_contact_by_chat(1001)
    assert updated.user_id == "user-1"
    assert updated.email == "new@example.com"
    assert updated.phone is None
    assert updated.push_enabled is False
    assert [c.user_id for c in await store.list_contacts()] == ["user-1"]
    assert await store.get_contact("nobody") is None


# Change feed


async def _next(queue: asyncio.Queue):
    return await asyncio.wait_for(queue.get(), timeout=1)


async def test_subscribe_delivers_initial_and_changed_snapshots(store):
    existing = await store.create(make_new(), now=NOW)
    snapshots: asyncio.Queue = asyncio.Queue()

    async def on_change(snapshot):
        await snapshots.put([r.id for r in snapshot])

    unsubscribe = store.subscribe_scheduled("user-1", on_change)
    try:
        assert await _next(snapshots) == [existing]

        added = await store.create(make_new(at=NOW + timedelta(hours=1)), now=NOW)
        assert await _next(snapshots) == [existing, added]

        # Leaving scheduled removes it from the feed
        await store.update_status(existing, "sent", NOW)
        assert await _next(snapshots) == [added]
    finally:
        unsubscribe()


async def test_subscribe_ignores_other_users(store):
    snapshots: asyncio.Queue = asyncio.Queue()

    async def on_change(snapshot):
        await snapshots.put(snapshot)

    unsubscribe = store.subscribe_scheduled("user-1", on_change)
    assert await _next(snapshots) == []

    await store.create(make_new(user_id="user-2"), now=NOW)
    await asyncio.sleep(0.05)
    assert snapshots.empty()
    unsubscribe()


async def test_unsubscribe_stops_delivery(store):
    """No snapshot arrives after unsubscribe returns, even for pending changes."""
    snapshots: asyncio.Queue = asyncio.Queue()

    async def on_change(snapshot):
        await snapshots.put(snapshot)

    unsubscribe = store.subscribe_scheduled("user-1", on_change)
    await _next(snapshots)

    # Change is published, then the feed is closed before the pump runs
    await store.create(make_new(), now=NOW)
    unsubscribe()
    await store.create(make_new(), now=NOW)
    await asyncio.sleep(0.05)

    assert snapshots.empty()
    await unsubscribe.wait_closed()
    assert unsubscribe.closed
    assert "user-1" not in store._subscriptions


async def test_unsubscribe_twice_is_harmless(store):
    async def on_change(snapshot):
        pass

    unsubscribe = store.subscribe_scheduled("user-1", on_change)
    unsubscribe()
    unsubscribe()
    await unsubscribe.wait_closed()


async def test_failing_callback_does_not_kill_feed(store):
    calls = []

    async def on_change(snapshot):
        calls.append(len(snapshot))
        if len(calls) == 1:
            raise RuntimeError("listener bug")

    unsubscribe = store.subscribe_scheduled("user-1", on_change)
    await asyncio.sleep(0.05)
    await store.create(make_new(), now=NOW)
    await asyncio.sleep(0.05)
    unsubscribe()

    assert calls == [0, 1]
