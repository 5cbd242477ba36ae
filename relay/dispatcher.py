"""Обработчики событий Socket.IO.

Каждый обработчик либо целиком применяет изменение и рассылает уведомления,
либо молча ничего не делает: неизвестный отправитель, несуществующий чат или
кривые данные клиенту не возвращаются, только пишутся в лог.
"""
import functools
from typing import Callable, Optional, Type

from loguru import logger
from pydantic import BaseModel, ValidationError

from relay.channels import Channels
from relay.directory import Directory
from relay.ledger import MessageLedger
from relay.models.chat import Chat
from relay.models.events import (
    ChatCreatePayload, ChatJoinPayload, ChatLeavePayload, MessageReadPayload,
    MessageSendPayload, RegisterPayload, SearchPayload, TypingPayload,
)
from relay.rooms import LeaveResult, RoomStore
from relay.utils import utcnow


def handler(payload: Optional[Type[BaseModel]] = None, requires_user: bool = True):
    """Разбирает данные события и находит пользователя по sid.

    Обёрнутый метод получает (sid, user, payload). Если пользователь не найден
    или данные не проходят проверку, событие отбрасывается.
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(self, sid, data=None):
            user = self.directory.resolve_user(sid)
            if requires_user and user is None:
                logger.debug(f"{func.__name__}: подключение {sid} не зарегистрировано, событие отброшено")
                return None

            parsed = None
            if payload is not None:
                try:
                    parsed = payload.model_validate(data if data is not None else {})
                except ValidationError as e:
                    logger.warning(f"{func.__name__}: некорректные данные от {sid}: {e.errors()}")
                    return None
            return func(self, sid, user, parsed)
        return wrapper
    return decorator


class Dispatcher:
    """Маршрутизация входящих событий и рассылка исходящих."""

    def __init__(self, directory: Directory, rooms: RoomStore, ledger: MessageLedger,
                 channels: Channels, clock: Callable = utcnow):
        self.directory = directory
        self.rooms = rooms
        self.ledger = ledger
        self.channels = channels
        self._clock = clock

    def bind(self, sio) -> None:
        """Регистрирует обработчики на сервере Socket.IO."""
        sio.on("connect", self.connect)
        sio.on("disconnect", self.disconnect)
        for event, method in self.events().items():
            sio.on(event, method)

    def events(self) -> dict:
        return {
            "register": self.register,
            "search-users": self.search_users,
            "random-user": self.random_user,
            "chat-create": self.chat_create,
            "chat-join": self.chat_join,
            "message-send": self.message_send,
            "message-read": self.message_read,
            "typing": self.typing,
            "chat-leave": self.chat_leave,
            "session-terminate": self.session_terminate,
            "status": self.status_request,
        }

    # Подписки на каналы чатов

    def _subscribe_participants(self, chat: Chat) -> None:
        for participant in chat.participants:
            self.channels.subscribe(chat.id, self.directory.connection_for(participant.id))

    def _notify_left(self, result: LeaveResult) -> None:
        if result.deleted:
            self.channels.close(result.chat.id)
        else:
            self.channels.publish(result.chat.id, "user-left",
                                  {"chatId": result.chat.id, "userId": result.user_id})

    # Подключение

    def connect(self, sid, environ=None, auth=None):
        self.channels.connect(sid)
        logger.info(f"Подключение {sid} установлено")

    def disconnect(self, sid, reason=None):
        user = self.directory.mark_offline(sid)
        self.channels.disconnect(sid)
        if user is not None:
            # Из чатов пользователь не удаляется, только помечается офлайн
            self.channels.broadcast("user-offline", user.to_payload(), skip_sid=sid)
            logger.info(f"Пользователь {user.username} (sid={sid}) отключился")
        else:
            logger.info(f"Подключение {sid} закрыто")

    @handler(RegisterPayload, requires_user=False)
    def register(self, sid, previous, data: RegisterPayload):
        # На этом подключении был другой пользователь, он останется без связи
        evicted = previous if previous is not None and previous.id != data.id else None
        if evicted is not None:
            self.channels.unsubscribe_all(sid)
        stale_sid = self.directory.connection_for(data.id)
        if stale_sid is not None and stale_sid != sid:
            self.channels.unsubscribe_all(stale_sid)

        user = self.directory.register(sid, data.id, data.username)
        for chat in self.rooms.chats_of(user.id):
            self.channels.subscribe(chat.id, sid)

        if evicted is not None:
            self.channels.broadcast("user-offline", evicted.to_payload(), skip_sid=sid)
        self.channels.broadcast("user-online", user.to_payload(), skip_sid=sid)
        logger.info(f"Пользователь {user.username} (id={user.id}, sid={sid}) зарегистрирован")

    # Поиск собеседника

    @handler(SearchPayload)
    def search_users(self, sid, user, data: SearchPayload):
        found = self.directory.search(data.query, excluding_user_id=user.id)
        self.channels.send(sid, "user-found", [u.to_payload() for u in found])
        logger.debug(f"Поиск '{data.query}' от {user.username}: найдено {len(found)}")

    @handler()
    def random_user(self, sid, user, data):
        match = self.directory.pick_random_online(excluding_user_id=user.id)
        self.channels.send(sid, "user-found", [match.to_payload()] if match else [])

    # Чаты

    @handler(ChatCreatePayload)
    def chat_create(self, sid, user, data: ChatCreatePayload):
        members = [self.directory.get(uid) for uid in data.participant_ids]
        chat = self.rooms.create(data.kind, user, [m for m in members if m is not None],
                                 name=data.name, description=data.description)
        self._subscribe_participants(chat)
        payload = chat.to_payload()
        self.channels.send(sid, "chat-created", payload)
        # Добавленные участники тоже узнают о новом чате
        for member in chat.participants[1:]:
            member_sid = self.directory.connection_for(member.id)
            if member_sid is not None and member_sid != sid:
                self.channels.send(member_sid, "chat-created", payload)

    @handler(ChatJoinPayload)
    def chat_join(self, sid, user, data: ChatJoinPayload):
        peer = self.directory.get(data.peer_id)
        existing = self.rooms.get(data.chat_id)
        was_member = existing is not None and existing.has_participant(user.id)
        chat = self.rooms.join_or_create_direct(data.chat_id, user, peer)
        if chat is None:
            return

        self._subscribe_participants(chat)
        self.channels.send(sid, "chat-joined", chat.to_payload())
        if was_member:
            return
        self.channels.publish(chat.id, "user-joined",
                              {"chatId": chat.id, "user": user.to_payload()}, skip_sid=sid)
        logger.info(f"Пользователь {user.username} вошёл в чат {chat.id}")

    @handler(ChatLeavePayload)
    def chat_leave(self, sid, user, data: ChatLeavePayload):
        self.channels.unsubscribe(data.chat_id, sid)
        result = self.rooms.leave(data.chat_id, user.id)
        if result is None:
            logger.debug(f"Выход из чата {data.chat_id}: {user.username} в нём не состоит")
            return
        self._notify_left(result)
        logger.info(f"Пользователь {user.username} покинул чат {data.chat_id}")

    # Сообщения

    @handler(MessageSendPayload)
    def message_send(self, sid, user, data: MessageSendPayload):
        message = self.ledger.append(data.chat_id, user, data.content)
        if message is None:
            return
        self.channels.publish(data.chat_id, "message-received", message.to_payload())
        logger.info(f"Сообщение от {user.username} в чате {data.chat_id}")

    @handler(MessageReadPayload)
    def message_read(self, sid, user, data: MessageReadPayload):
        message = self.ledger.mark_read(data.chat_id, data.message_id)
        if message is None:
            return
        self.channels.publish(data.chat_id, "message-updated", message.to_payload())

    @handler(TypingPayload)
    def typing(self, sid, user, data: TypingPayload):
        if data.chat_id not in self.rooms:
            return
        self.channels.publish(data.chat_id, "user-typing", {
            "chatId": data.chat_id,
            "userId": user.id,
            "username": user.username,
            "isTyping": data.is_typing,
        }, skip_sid=sid)

    # Сжигание сессии

    @handler()
    def session_terminate(self, sid, user, data):
        for result in self.rooms.leave_all(user.id):
            self.channels.unsubscribe(result.chat.id, sid)
            self._notify_left(result)
        self.directory.remove(user.id)
        self.channels.unsubscribe_all(sid)
        self.channels.send(sid, "session-terminated")
        logger.info(f"Сессия пользователя {user.username} (id={user.id}) сожжена")

    # Состояние сервера

    def status(self) -> dict:
        return {
            "status": "ok",
            "users": len(self.directory),
            "chats": len(self.rooms),
            "timestamp": self._clock().isoformat(),
        }

    def status_request(self, sid, data=None):
        status = self.status()
        self.channels.send(sid, "status", status)
        return status
