from datetime import datetime, timedelta
from typing import Callable, List, Optional

from loguru import logger

from relay.models.message import Message
from relay.models.user import User
from relay.rooms import RoomStore
from relay.utils import new_id, utcnow

MESSAGE_TTL = timedelta(minutes=5)


class MessageLedger:
    """Сообщения чатов. Каждое живёт ровно ttl с момента отправки.

    Удаляет сообщения только sweep_expired.
    """

    def __init__(self, rooms: RoomStore, ttl: timedelta = MESSAGE_TTL,
                 clock: Callable = utcnow, id_factory: Callable[[], str] = new_id):
        self._rooms = rooms
        self.ttl = ttl
        self._clock = clock
        self._new_id = id_factory

    def append(self, chat_id: str, sender: User, content: str) -> Optional[Message]:
        chat = self._rooms.get(chat_id)
        if chat is None:
            logger.debug(f"Сообщение от {sender.id} в несуществующий чат {chat_id} отброшено")
            return None

        now = self._clock()
        message = Message(
            id=self._new_id(),
            content=content,
            sender_id=sender.id,
            sender_username=sender.username,
            timestamp=now,
            is_read=False,
            is_replied_to=False,
            chat_id=chat.id,
            expires_at=now + self.ttl,
        )
        chat.messages.append(message)
        chat.last_activity_at = now
        return message

    def mark_read(self, chat_id: str, message_id: str) -> Optional[Message]:
        chat = self._rooms.get(chat_id)
        if chat is None:
            return None
        message = chat.find_message(message_id)
        if message is not None:
            message.is_read = True
        return message

    def sweep_expired(self, chat_id: str, now: Optional[datetime] = None) -> List[Message]:
        """Убирает просроченные сообщения и возвращает их. Порядок остальных не меняется."""
        chat = self._rooms.get(chat_id)
        if chat is None:
            return []
        now = now or self._clock()
        expired = [m for m in chat.messages if m.is_expired(now)]
        if expired:
            chat.messages = [m for m in chat.messages if not m.is_expired(now)]
        return expired
