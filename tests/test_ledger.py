from datetime import timedelta

import pytest

from relay.ledger import MESSAGE_TTL, MessageLedger
from relay.models.user import User
from relay.rooms import RoomStore


@pytest.fixture
def rooms(clock):
    return RoomStore(clock=clock)


@pytest.fixture
def ledger(rooms, clock):
    return MessageLedger(rooms, clock=clock)


@pytest.fixture
def alice():
    return User(id="a", username="Alice")


@pytest.fixture
def chat(rooms, alice):
    return rooms.create("direct", alice)


def test_append_stamps_message(ledger, chat, alice, clock):
    clock.advance(seconds=5)

    message = ledger.append(chat.id, alice, "hi")

    assert message.content == "hi"
    assert message.sender_id == "a"
    assert message.sender_username == "Alice"
    assert message.chat_id == chat.id
    assert message.is_read is False
    assert message.is_replied_to is False
    assert message.timestamp == clock.now
    assert chat.last_activity_at == clock.now
    assert chat.messages == [message]


def test_ttl_is_exactly_five_minutes(ledger, chat, alice, clock):
    for _ in range(5):
        message = ledger.append(chat.id, alice, "tick")
        assert message.expires_at - message.timestamp == timedelta(minutes=5)
        clock.advance(seconds=17, microseconds=3)
    assert MESSAGE_TTL == timedelta(minutes=5)


def test_append_to_unknown_chat(ledger, alice):
    assert ledger.append("missing", alice, "hi") is None


def test_mark_read(ledger, chat, alice):
    message = ledger.append(chat.id, alice, "hi")

    updated = ledger.mark_read(chat.id, message.id)

    assert updated is message
    assert message.is_read is True


def test_mark_read_unknown_ids(ledger, chat, alice):
    ledger.append(chat.id, alice, "hi")

    assert ledger.mark_read(chat.id, "nope") is None
    assert ledger.mark_read("missing", "nope") is None


def test_sweep_removes_only_expired_and_keeps_order(ledger, chat, alice, clock):
    old = ledger.append(chat.id, alice, "old")
    clock.advance(minutes=2)
    middle = ledger.append(chat.id, alice, "middle")
    clock.advance(minutes=1)
    new = ledger.append(chat.id, alice, "new")

    removed = ledger.sweep_expired(chat.id, old.expires_at)

    assert removed == [old]
    assert chat.messages == [middle, new]


def test_sweep_keeps_message_until_expiry(ledger, chat, alice):
    message = ledger.append(chat.id, alice, "hi")

    assert ledger.sweep_expired(chat.id, message.expires_at - timedelta(microseconds=1)) == []
    assert chat.messages == [message]


def test_sweep_unknown_chat(ledger):
    assert ledger.sweep_expired("missing") == []
