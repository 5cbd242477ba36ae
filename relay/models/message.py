from datetime import datetime

from relay.models.base import CamelModel


class Message(CamelModel):
    id: str
    content: str               # Текст сообщения
    sender_id: str             # Автор сообщения
    sender_username: str       # Имя автора на момент отправки
    timestamp: datetime        # Время создания
    is_read: bool = False
    is_replied_to: bool = False
    chat_id: str
    expires_at: datetime       # timestamp + TTL

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
