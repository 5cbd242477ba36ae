from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

# Совместима с socketio.Server.emit(event, data, to=sid)
EmitFn = Callable[..., None]


class Channels:
    """Публикация/подписка по id чата поверх emit одного подключения.

    Не зависит от комнат Socket.IO: кто подписан на чат, решает диспетчер.
    Рассылка синхронная, без очередей и повторов.
    """

    def __init__(self, emit: EmitFn):
        self._emit = emit
        self._connections: Dict[str, None] = {}          # все живые sid, по порядку подключения
        self._subscribers: Dict[str, Dict[str, None]] = {}  # channel -> упорядоченное множество sid

    # Подключения

    def connect(self, sid: str) -> None:
        self._connections[sid] = None

    def disconnect(self, sid: str) -> None:
        self._connections.pop(sid, None)
        self.unsubscribe_all(sid)

    def connections(self) -> List[str]:
        return list(self._connections)

    # Подписки

    def subscribe(self, channel: str, sid: Optional[str]) -> None:
        if sid is None:
            return
        self._subscribers.setdefault(channel, {})[sid] = None

    def unsubscribe(self, channel: str, sid: Optional[str]) -> None:
        subscribers = self._subscribers.get(channel)
        if subscribers is None or sid is None:
            return
        subscribers.pop(sid, None)
        if not subscribers:
            del self._subscribers[channel]

    def unsubscribe_all(self, sid: str) -> None:
        for channel in list(self._subscribers):
            self.unsubscribe(channel, sid)

    def close(self, channel: str) -> None:
        self._subscribers.pop(channel, None)

    def subscribers(self, channel: str) -> List[str]:
        return list(self._subscribers.get(channel, {}))

    # Отправка

    def send(self, sid: str, event: str, data=None) -> None:
        """Ответ одному подключению."""
        self._emit(event, data, to=sid)

    def publish(self, channel: str, event: str, data=None, skip_sid: Optional[str] = None) -> int:
        """Рассылка всем подписчикам канала. Возвращает число получателей."""
        return self._deliver(self.subscribers(channel), event, data, skip_sid)

    def broadcast(self, event: str, data=None, skip_sid: Optional[str] = None) -> int:
        """Рассылка всем подключениям."""
        return self._deliver(self.connections(), event, data, skip_sid)

    def _deliver(self, sids: Iterable[str], event: str, data, skip_sid: Optional[str]) -> int:
        delivered = 0
        for sid in sids:
            if sid == skip_sid:
                continue
            self._emit(event, data, to=sid)
            delivered += 1
        logger.debug(f"Событие {event} отправлено {delivered} подключениям")
        return delivered
