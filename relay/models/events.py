"""Входящие события клиента. Проверяются до того, как трогаем состояние."""
from typing import List, Optional

from pydantic import AliasChoices, Field, model_validator

from relay.models.base import CamelModel
from relay.models.chat import ChatKind


class RegisterPayload(CamelModel):
    id: str
    username: str


class SearchPayload(CamelModel):
    query: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_string(cls, data):
        # Клиент может прислать строку запроса без обёртки
        if isinstance(data, str):
            return {"query": data}
        return data


class ChatCreatePayload(CamelModel):
    # Старые клиенты присылают тип чата в поле "type"
    kind: ChatKind = Field(default="direct", validation_alias=AliasChoices("kind", "type"))
    name: Optional[str] = None
    description: Optional[str] = None
    participant_ids: List[str] = []   # Кого сразу добавить кроме создателя


class ChatJoinPayload(CamelModel):
    chat_id: Optional[str] = None
    peer_id: Optional[str] = None


class MessageSendPayload(CamelModel):
    chat_id: str
    content: str


class MessageReadPayload(CamelModel):
    chat_id: str
    message_id: str


class TypingPayload(CamelModel):
    chat_id: str
    is_typing: bool = False


class ChatLeavePayload(CamelModel):
    chat_id: str
