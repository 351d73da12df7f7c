# fusion_engine/services/events.py
import threading
from typing import Callable, Generic, List, TypeVar

from .logger_service import LoggerService

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    Типизированный канал событий.

    Каждый слушатель получает каждое событие ровно один раз и в порядке
    публикации. Исключение в слушателе пишется в журнал и не мешает
    остальным.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = LoggerService.get_logger(f"EventChannel.{name}")
        self._listeners: List[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """
        Регистрирует слушателя.

        Returns:
            Функция, снимающая регистрацию
        """
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Callable[[T], None]) -> bool:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
        return False

    def publish(self, event: T) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                self.logger.error(f"Ошибка в слушателе канала {self.name}: {e}", exc_info=True)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
