"""Tests for the notification gateway."""

import pytest
from conftest import FakeChannel, make_reminder

from duebell.dispatch.gateway import NotificationGateway
from duebell.dispatch.push import PushChannel
from duebell.errors import StoreError, TransportError


async def test_every_channel_attempted_and_reported(gateway, push_provider, email_channel):
    """One failing channel never blocks the others."""
    email_channel.error = TransportError("smtp down")
    reminder = make_reminder(channel=("push", "email", "whatsapp"))

    result = await gateway.dispatch(reminder)

    assert set(result.outcomes) == {"push", "email", "whatsapp"}
    assert result.delivered == ["push", "whatsapp"]
    assert result.failed == ["email"]
    assert result.outcomes["email"].reason == "TransportError"
    assert len(push_provider.shown) == 1


async def test_all_channels_failing(gateway, push_provider, email_channel, whatsapp_channel):
    push_provider.permission = "denied"
    email_channel.error = TransportError("smtp down")
    whatsapp_channel.error = TransportError("graph api 500")
    reminder = make_reminder(channel=("push", "email", "whatsapp"))

    result = await gateway.dispatch(reminder)

    assert result.all_failed
    assert result.outcomes["push"].reason == "PermissionDenied"
    assert push_provider.shown == []


async def test_unsupported_push(gateway, push_provider):
    push_provider.permission = "unsupported"

    result = await gateway.dispatch(make_reminder())

    assert result.outcomes["push"].reason == "Unsupported"


async def test_unconfigured_channel_is_unsupported(gateway):
    result = await gateway.dispatch(make_reminder(), channels=["push", "sms"])

    assert result.outcomes["push"].delivered
    assert result.outcomes["sms"].reason == "Unsupported"


async def test_duplicate_requested_channels_sent_once(gateway, email_channel):
    result = await gateway.dispatch(make_reminder(), channels=["email", "email"])

    assert list(result.outcomes) == ["email"]
    assert email_channel.sent == ["r1"]


async def test_slow_channel_times_out(store):
    slow = FakeChannel("email", delay=5)
    fast = FakeChannel("whatsapp")
    gateway = NotificationGateway([slow, fast], store, timeout=0.05)

    result = await gateway.dispatch(make_reminder(channel=("email", "whatsapp")))

    assert result.outcomes["email"].reason == "DispatchTimeout"
    assert result.outcomes["whatsapp"].delivered


async def test_unexpected_channel_error_is_contained(store):
    broken = FakeChannel("email", error=RuntimeError("bug"))
    gateway = NotificationGateway([broken], store)

    result = await gateway.dispatch(make_reminder(channel=("email",)))

    assert result.outcomes["email"].reason == "RuntimeError"


async def test_contact_lookup_failure_fails_every_channel(email_channel):
    class BrokenContacts:
        async def get_contact(self, user_id):
            raise StoreError("database is locked")

    gateway = NotificationGateway([email_channel], BrokenContacts())

    result = await gateway.dispatch(make_reminder(channel=("email", "whatsapp")))

    assert result.all_failed
    assert set(result.outcomes) == {"email", "whatsapp"}
    assert email_channel.sent == []


async def test_prepare_reports_channel_readiness(store, push_provider, email_channel):
    gateway = NotificationGateway([PushChannel(push_provider), email_channel], store)

    assert await gateway.prepare("user-1") == {"push": "granted", "email": None}


async def test_prepare_propagates_store_errors(email_channel):
    class BrokenContacts:
        async def get_contact(self, user_id):
            raise StoreError("database is locked")

    gateway = NotificationGateway([email_channel], BrokenContacts())

    with pytest.raises(StoreError):
        await gateway.prepare("user-1")
