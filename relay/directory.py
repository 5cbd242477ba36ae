import random
from typing import Callable, Dict, List, Optional

from loguru import logger

from relay.models.user import User
from relay.utils import utcnow

SEARCH_LIMIT = 10


class Directory:
    """Кто сейчас в сети и какое подключение принадлежит какому пользователю.

    Связь sid <-> user_id один к одному: последнее подключение побеждает.
    Записи пользователей переживают отключение и удаляются только при
    сжигании сессии.
    """

    def __init__(self, clock: Callable = utcnow, rng: Optional[random.Random] = None,
                 search_limit: int = SEARCH_LIMIT):
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._search_limit = search_limit
        self._users: Dict[str, User] = {}       # user_id -> User (в порядке регистрации)
        self._user_by_sid: Dict[str, str] = {}  # sid -> user_id
        self._sid_by_user: Dict[str, str] = {}  # user_id -> sid

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._users

    def get(self, user_id: Optional[str]) -> Optional[User]:
        if user_id is None:
            return None
        return self._users.get(user_id)

    def users(self) -> List[User]:
        return list(self._users.values())

    def register(self, sid: str, user_id: str, username: str) -> User:
        """Добавляет или обновляет пользователя и привязывает его к sid."""
        now = self._clock()
        user = self._users.get(user_id)
        if user is None:
            user = User(id=user_id, username=username, is_online=True, last_seen=now)
            self._users[user_id] = user
        else:
            # Обновляем на месте, чтобы участники чатов видели актуальную запись
            user.username = username
            user.is_online = True
            user.last_seen = now

        # Подключение раньше принадлежало другому пользователю
        stale_user_id = self._user_by_sid.get(sid)
        if stale_user_id is not None and stale_user_id != user_id:
            self._sid_by_user.pop(stale_user_id, None)
            # Без подключения прежний пользователь больше не в сети
            stale_user = self._users.get(stale_user_id)
            if stale_user is not None:
                stale_user.is_online = False
                stale_user.last_seen = now
                logger.debug(f"Пользователь {stale_user_id} потерял подключение {sid} и теперь офлайн")

        # У пользователя было другое подключение
        stale_sid = self._sid_by_user.get(user_id)
        if stale_sid is not None and stale_sid != sid:
            self._user_by_sid.pop(stale_sid, None)
            logger.debug(f"Пользователь {user_id} перепривязан: {stale_sid} -> {sid}")

        self._user_by_sid[sid] = user_id
        self._sid_by_user[user_id] = sid
        logger.debug(f"Пользователь зарегистрирован: {username} (id={user_id}, sid={sid})")
        return user

    def resolve_user(self, sid: str) -> Optional[User]:
        """Возвращает пользователя по SID."""
        return self.get(self._user_by_sid.get(sid))

    def connection_for(self, user_id: str) -> Optional[str]:
        """Возвращает SID текущего подключения пользователя."""
        return self._sid_by_user.get(user_id)

    def mark_offline(self, sid: str) -> Optional[User]:
        """Помечает пользователя офлайн и снимает привязку. Запись остаётся."""
        user_id = self._user_by_sid.pop(sid, None)
        if user_id is None:
            return None
        if self._sid_by_user.get(user_id) == sid:
            del self._sid_by_user[user_id]
        user = self._users.get(user_id)
        if user is not None:
            user.is_online = False
            user.last_seen = self._clock()
            logger.debug(f"Пользователь {user.username} (id={user_id}) теперь офлайн")
        return user

    def remove(self, user_id: str) -> Optional[User]:
        """Удаляет пользователя полностью вместе с обеими привязками."""
        user = self._users.pop(user_id, None)
        sid = self._sid_by_user.pop(user_id, None)
        if sid is not None:
            self._user_by_sid.pop(sid, None)
        if user is not None:
            logger.debug(f"Пользователь удалён: {user.username} (id={user_id})")
        return user

    def search(self, query: str, excluding_user_id: Optional[str] = None) -> List[User]:
        """Поиск по подстроке имени без учёта регистра, только среди тех, кто в сети.

        Порядок выдачи совпадает с порядком регистрации.
        """
        needle = (query or "").lower()
        found = []
        for user in self._users.values():
            if not user.is_online or user.id == excluding_user_id:
                continue
            if needle in user.username.lower():
                found.append(user)
                if len(found) >= self._search_limit:
                    break
        return found

    def pick_random_online(self, excluding_user_id: Optional[str] = None) -> Optional[User]:
        candidates = [u for u in self._users.values()
                      if u.is_online and u.id != excluding_user_id]
        if not candidates:
            return None
        return self._rng.choice(candidates)
