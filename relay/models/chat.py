from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from relay.models.base import CamelModel
from relay.models.message import Message
from relay.models.user import User
from relay.utils import utcnow

ChatKind = Literal["direct", "group"]


class Chat(CamelModel):
    id: str
    kind: ChatKind = "direct"
    participants: List[User] = []     # Уникальны по id, порядок входа сохраняется
    messages: List[Message] = []      # Лента сообщений в порядке отправки
    created_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    # Поля группового чата
    name: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    def participant_ids(self) -> List[str]:
        return [p.id for p in self.participants]

    def has_participant(self, user_id: str) -> bool:
        return any(p.id == user_id for p in self.participants)

    def add_participant(self, user: User) -> bool:
        """Добавляет участника. Повторный вход ничего не меняет."""
        if self.has_participant(user.id):
            return False
        self.participants.append(user)
        return True

    def remove_participant(self, user_id: str) -> bool:
        before = len(self.participants)
        self.participants = [p for p in self.participants if p.id != user_id]
        return len(self.participants) != before

    def find_message(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)
