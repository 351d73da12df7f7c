# fusion_engine/handlers/providers.py
"""
Интерфейсы внешних источников данных и ручные реализации для
воспроизведения записанных треков и тестов.
"""
import threading
from typing import Callable, List, Optional, Protocol

from ..errors import FusionEngineError, SensorUnavailable
from .models import MotionSample, OrientationSample, ProviderOptions, RawPositionSample

SampleCallback = Callable[[RawPositionSample], None]
ErrorCallback = Callable[[FusionEngineError], None]
MotionCallback = Callable[[MotionSample], None]
OrientationCallback = Callable[[OrientationSample], None]


class Subscription(Protocol):
    """Подписка на источник; cancel() должен быть идемпотентным."""

    def cancel(self) -> None:
        ...


class PositionProvider(Protocol):
    """Протокол провайдера местоположения."""

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback,
                       options: ProviderOptions) -> Subscription:
        """
        Подписаться на поток отсчётов.

        Может синхронно поднять PermissionDenied или ProviderUnavailable.
        """
        ...


class MotionProvider(Protocol):
    """Протокол провайдера инерциальных датчиков."""

    def watch_motion(self, on_motion: MotionCallback,
                     on_orientation: OrientationCallback) -> Subscription:
        """
        Подписаться на поток ускорений и ориентации.

        Поднимает SensorUnavailable, если датчиков нет.
        """
        ...


class CallbackSubscription:
    """Подписка, снимающая себя из списка слушателей провайдера."""

    def __init__(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel
        self._cancelled = False
        self._lock = threading.Lock()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        self._on_cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ReplayPositionProvider:
    """
    Провайдер, в который отсчёты и ошибки подаются вручную.

    Args:
        start_error: Ошибка, которую watch_position поднимет синхронно
    """

    def __init__(self, start_error: Optional[FusionEngineError] = None):
        self.start_error = start_error
        self.last_options: Optional[ProviderOptions] = None
        self._watchers: List[tuple] = []
        self._lock = threading.Lock()

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback,
                       options: ProviderOptions) -> CallbackSubscription:
        if self.start_error is not None:
            raise self.start_error
        entry = (on_sample, on_error)
        with self._lock:
            self._watchers.append(entry)
            self.last_options = options
        return CallbackSubscription(lambda: self._remove(entry))

    def _remove(self, entry) -> None:
        with self._lock:
            if entry in self._watchers:
                self._watchers.remove(entry)

    def push(self, sample: RawPositionSample) -> None:
        for on_sample, _ in self._snapshot():
            on_sample(sample)

    def push_error(self, error: FusionEngineError) -> None:
        for _, on_error in self._snapshot():
            on_error(error)

    def _snapshot(self) -> List[tuple]:
        with self._lock:
            return list(self._watchers)

    @property
    def watcher_count(self) -> int:
        with self._lock:
            return len(self._watchers)


class ReplayMotionProvider:
    """Провайдер инерциальных данных с ручной подачей отсчётов."""

    def __init__(self, available: bool = True):
        self.available = available
        self._watchers: List[tuple] = []
        self._lock = threading.Lock()

    def watch_motion(self, on_motion: MotionCallback,
                     on_orientation: OrientationCallback) -> CallbackSubscription:
        if not self.available:
            raise SensorUnavailable("Инерциальные датчики недоступны")
        entry = (on_motion, on_orientation)
        with self._lock:
            self._watchers.append(entry)
        return CallbackSubscription(lambda: self._remove(entry))

    def _remove(self, entry) -> None:
        with self._lock:
            if entry in self._watchers:
                self._watchers.remove(entry)

    def push_motion(self, sample: MotionSample) -> None:
        for on_motion, _ in self._snapshot():
            on_motion(sample)

    def push_orientation(self, sample: OrientationSample) -> None:
        for _, on_orientation in self._snapshot():
            on_orientation(sample)

    def _snapshot(self) -> List[tuple]:
        with self._lock:
            return list(self._watchers)

    @property
    def watcher_count(self) -> int:
        with self._lock:
            return len(self._watchers)
