import json
from datetime import timedelta
from typing import Optional

import socketio
from loguru import logger

from relay.channels import Channels
from relay.config import Settings, settings as default_settings
from relay.directory import Directory
from relay.dispatcher import Dispatcher
from relay.ledger import MessageLedger
from relay.rooms import RoomStore
from relay.sweeper import Sweeper
from relay.utils import utcnow


class Relay:
    """Всё состояние сервера в одном месте: каталог, чаты, сообщения, очистка."""

    def __init__(self, emit, config: Settings = default_settings, clock=utcnow):
        self.config = config
        self.directory = Directory(clock=clock, search_limit=config.search_limit)
        self.rooms = RoomStore(clock=clock)
        self.ledger = MessageLedger(self.rooms, ttl=timedelta(seconds=config.message_ttl_seconds),
                                    clock=clock)
        self.channels = Channels(emit)
        self.dispatcher = Dispatcher(self.directory, self.rooms, self.ledger, self.channels,
                                     clock=clock)
        self.sweeper = Sweeper(self.rooms, self.ledger, self.channels,
                               interval=config.sweep_interval_seconds, clock=clock)


def health_app(relay: Relay):
    """WSGI-приложение для GET /health: только читает счётчики."""
    def app(environ, start_response):
        if environ.get("PATH_INFO", "").rstrip("/") != "/health":
            start_response("404 Not Found", [("Content-Type", "application/json")])
            return [json.dumps({"detail": "Not found"}).encode()]
        body = json.dumps(relay.dispatcher.status()).encode()
        start_response("200 OK", [("Content-Type", "application/json"),
                                  ("Content-Length", str(len(body)))])
        return [body]
    return app


def create_app(config: Optional[Settings] = None):
    """Собирает сервер Socket.IO, состояние и WSGI-приложение."""
    config = config or default_settings
    sio = socketio.Server(cors_allowed_origins=config.cors_origins(), async_mode="eventlet")
    relay = Relay(sio.emit, config)
    relay.dispatcher.bind(sio)
    app = socketio.WSGIApp(sio, wsgi_app=health_app(relay))
    logger.info("Сервер Socket.IO собран")
    return sio, app, relay
