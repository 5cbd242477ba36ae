from datetime import datetime

from pydantic import Field

from relay.models.base import CamelModel
from relay.utils import utcnow


class User(CamelModel):
    id: str                  # Идентификатор, который прислал клиент
    username: str            # Отображаемое имя (не обязано быть уникальным)
    is_online: bool = True   # Есть ли сейчас живое подключение
    last_seen: datetime = Field(default_factory=utcnow)  # Последняя смена статуса
