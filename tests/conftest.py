from datetime import datetime, timedelta, timezone

import pytest

from relay.config import Settings
from relay.server import Relay


class FakeClock:
    """Часы, которые двигаются только вручную."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Outbox:
    """Записывает всё, что сервер отправил через emit."""

    def __init__(self):
        self.sent = []

    def __call__(self, event, data=None, to=None, **kwargs):
        self.sent.append((event, data, to))

    def to(self, sid, event=None):
        return [d for e, d, t in self.sent if t == sid and (event is None or e == event)]

    def events(self, event):
        return [(d, t) for e, d, t in self.sent if e == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def relay(clock, outbox):
    return Relay(outbox, Settings(), clock=clock)


@pytest.fixture
def dispatcher(relay):
    return relay.dispatcher


@pytest.fixture
def connect(dispatcher):
    """Подключает и регистрирует пользователя, возвращает его sid."""
    def _connect(sid, user_id, username):
        dispatcher.connect(sid, {})
        dispatcher.register(sid, {"id": user_id, "username": username})
        return sid
    return _connect
