"""Shared fixtures and fakes."""

import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from duebell.db.migrations import run_migrations
from duebell.db.models import Contact, NewReminder, Reminder, Schedule
from duebell.db.repository import ReminderStore
from duebell.dispatch.gateway import Channel, NotificationGateway
from duebell.dispatch.push import PushChannel

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=ZoneInfo("UTC"))


class FakeClock:
    """Settable clock, callable like utcnow."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeChannel(Channel):
    """Records sends; raises `error` or waits on `gate` when set."""

    def __init__(self, name: str, error: Exception | None = None, delay: float = 0):
        self.name = name
        self.error = error
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.sent: list = []

    async def send(self, reminder, contact) -> None:
        self.sent.append(reminder.id)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error


class FakePushProvider:
    """Push provider that records payloads instead of showing them."""

    def __init__(self, permission: str = "granted"):
        self.permission = permission
        self.shown: list = []

    async def request_permission(self, contact):
        return self.permission

    async def show(self, contact, payload) -> None:
        self.shown.append(payload)


def make_new(user_id: str = "user-1", at: datetime = NOW, **fields) -> NewReminder:
    fields.setdefault("title", "Pay rent")
    fields.setdefault("channel", ("push",))
    return NewReminder(user_id=user_id, schedule=Schedule(at), **fields)


def make_reminder(id: str = "r1", at: datetime = NOW, **fields) -> Reminder:
    """A stored-looking reminder, built without touching the database."""
    fields.setdefault("user_id", "user-1")
    fields.setdefault("title", "Pay rent")
    fields.setdefault("channel", ("push",))
    fields.setdefault("status", "scheduled")
    return Reminder(id=id, schedule=Schedule(at), **fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(tmp_path):
    db_path = tmp_path / "test.db"
    await run_migrations(db_path)
    store = ReminderStore(db_path)
    await store.connect()
    await store.upsert_contact(
        Contact(
            user_id="user-1",
            email="user@example.com",
            phone="919876543210",
            telegram_chat_id=1001,
        )
    )
    yield store
    await store.close()


@pytest.fixture
def push_provider() -> FakePushProvider:
    return FakePushProvider()


@pytest.fixture
def email_channel() -> FakeChannel:
    return FakeChannel("email")


@pytest.fixture
def whatsapp_channel() -> FakeChannel:
    return FakeChannel("whatsapp")


@pytest.fixture
def gateway(store, push_provider, email_channel, whatsapp_channel) -> NotificationGateway:
    return NotificationGateway(
        [PushChannel(push_provider), email_channel, whatsapp_channel],
        store,
        timeout=1.0,
    )
