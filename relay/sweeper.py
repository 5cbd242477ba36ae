from typing import Callable, Optional

from loguru import logger

from relay.channels import Channels
from relay.ledger import MessageLedger
from relay.rooms import RoomStore
from relay.utils import utcnow

SWEEP_INTERVAL = 60  # секунд


class SweepHandle:
    """Ручка запущенной фоновой очистки."""

    def __init__(self):
        self.cancelled = False
        self.task = None

    def cancel(self) -> None:
        self.cancelled = True


class Sweeper:
    """Периодически убирает просроченные сообщения из всех чатов.

    Сами чаты не трогает, даже если в них не осталось сообщений.
    """

    def __init__(self, rooms: RoomStore, ledger: MessageLedger, channels: Channels,
                 interval: float = SWEEP_INTERVAL, clock: Callable = utcnow):
        self._rooms = rooms
        self._ledger = ledger
        self._channels = channels
        self.interval = interval
        self._clock = clock
        self._handle: Optional[SweepHandle] = None

    def tick(self, now=None) -> int:
        """Один проход очистки. Возвращает число удалённых сообщений."""
        now = now or self._clock()
        removed = 0
        for chat in self._rooms.chats():
            expired = self._ledger.sweep_expired(chat.id, now)
            for message in expired:
                self._channels.publish(chat.id, "message-expired",
                                       {"chatId": chat.id, "messageId": message.id})
            if expired:
                removed += len(expired)
                logger.info(f"Из чата {chat.id} удалено просроченных сообщений: {len(expired)}")
        return removed

    def start(self, start_task: Callable, sleep: Callable) -> SweepHandle:
        """Запускает фоновую задачу.

        start_task и sleep берутся у сервера: sio.start_background_task и sio.sleep.
        """
        if self._handle is not None and not self._handle.cancelled:
            logger.warning("Очистка сообщений уже запущена")
            return self._handle

        handle = SweepHandle()
        handle.task = start_task(self._run, handle, sleep)
        self._handle = handle
        logger.info(f"Очистка сообщений запущена, период {self.interval} с")
        return handle

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.info("Очистка сообщений остановлена")

    def _run(self, handle: SweepHandle, sleep: Callable) -> None:
        while not handle.cancelled:
            sleep(self.interval)
            if handle.cancelled:
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Ошибка при очистке сообщений, продолжаем по расписанию")
