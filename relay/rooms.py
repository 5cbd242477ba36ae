from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from loguru import logger

from relay.models.chat import Chat, ChatKind
from relay.models.user import User
from relay.utils import new_id, utcnow


class LeaveResult(NamedTuple):
    chat: Chat
    user_id: str
    deleted: bool   # Чат опустел и удалён


class RoomStore:
    """Хранилище чатов: создание, участники, удаление пустых."""

    def __init__(self, clock: Callable = utcnow, id_factory: Callable[[], str] = new_id):
        self._clock = clock
        self._new_id = id_factory
        self._chats: Dict[str, Chat] = {}  # chat_id -> Chat (в порядке создания)

    def __len__(self) -> int:
        return len(self._chats)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._chats

    def get(self, chat_id: Optional[str]) -> Optional[Chat]:
        if chat_id is None:
            return None
        return self._chats.get(chat_id)

    def chats(self) -> List[Chat]:
        """Снимок всех чатов, можно менять хранилище во время обхода."""
        return list(self._chats.values())

    def chats_of(self, user_id: str) -> List[Chat]:
        return [c for c in self._chats.values() if c.has_participant(user_id)]

    def _new_chat(self, chat_id: str, kind: ChatKind, participants: List[User], **extra) -> Chat:
        now = self._clock()
        chat = Chat(id=chat_id, kind=kind, participants=participants,
                    created_at=now, last_activity_at=now, is_active=True, **extra)
        self._chats[chat.id] = chat
        logger.info(f"Чат создан: {chat.id} ({chat.kind}), участников: {len(chat.participants)}")
        return chat

    def create(self, kind: ChatKind, first_participant: User, members: Iterable[User] = (),
               name: Optional[str] = None, description: Optional[str] = None) -> Chat:
        """Создаёт чат с создателем и, при необходимости, другими участниками."""
        chat = self._new_chat(self._new_id(), kind, [first_participant],
                              name=name, description=description,
                              created_by=first_participant.id)
        for user in members:
            chat.add_participant(user)
        return chat

    def join_or_create_direct(self, chat_id: Optional[str], requester: User,
                              peer: Optional[User] = None) -> Optional[Chat]:
        """Входит в существующий чат или создаёт личный чат с собеседником.

        Если нет ни чата, ни собеседника, возвращает None.
        """
        chat = self.get(chat_id)
        if chat is not None:
            if chat.add_participant(requester):
                logger.debug(f"Пользователь {requester.id} вошёл в чат {chat.id}")
            return chat

        if peer is None:
            logger.debug(f"Нечего открывать: чата {chat_id} нет и собеседник не указан")
            return None

        participants = [requester] if peer.id == requester.id else [requester, peer]
        return self._new_chat(chat_id or self._new_id(), "direct", participants)

    def leave(self, chat_id: str, user_id: str) -> Optional[LeaveResult]:
        """Убирает участника. Опустевший чат удаляется сразу."""
        chat = self._chats.get(chat_id)
        if chat is None or not chat.remove_participant(user_id):
            return None

        if not chat.participants:
            del self._chats[chat_id]
            chat.is_active = False
            logger.info(f"Чат {chat_id} опустел и удалён")
            return LeaveResult(chat, user_id, deleted=True)

        logger.debug(f"Пользователь {user_id} покинул чат {chat_id}")
        return LeaveResult(chat, user_id, deleted=False)

    def leave_all(self, user_id: str) -> List[LeaveResult]:
        results = []
        for chat in self.chats_of(user_id):
            result = self.leave(chat.id, user_id)
            if result is not None:
                results.append(result)
        return results
