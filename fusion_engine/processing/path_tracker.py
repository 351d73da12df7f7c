# fusion_engine/processing/path_tracker.py
import random
import string
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..configs.schema import Path, Performance, Tier
from ..handlers.models import FusedPosition, PathPoint
from ..services.events import EventChannel
from ..services.logger_service import LoggerService
from ..services.performance_monitor import PerformanceMonitor, PerformanceTier
from ..utils.geometry import point_segment_distance
from ..utils.ring_buffer import RingBuffer

SimplifiedPath = Tuple[PathPoint, ...]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def douglas_peucker(points: Sequence[PathPoint], tolerance: float) -> List[PathPoint]:
    """
    Упрощение ломаной алгоритмом Дугласа-Пекера.

    Отклонение считается в градусах как расстояние до отрезка между
    концами участка. Рекурсия заменена явным стеком, поэтому длинные
    треки не упираются в предел глубины. Первая и последняя точки
    сохраняются всегда.
    """
    count = len(points)
    if count <= 2:
        return list(points)

    keep = [False] * count
    keep[0] = keep[-1] = True
    stack = [(0, count - 1)]

    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue
        a, b = points[start], points[end]
        max_distance = -1.0
        index = start
        for i in range(start + 1, end):
            p = points[i]
            distance = point_segment_distance(p.lat, p.lng, a.lat, a.lng, b.lat, b.lng)
            if distance > max_distance:
                max_distance = distance
                index = i
        if max_distance > tolerance:
            keep[index] = True
            stack.append((start, index))
            stack.append((index, end))

    return [p for p, flag in zip(points, keep) if flag]


class PathTracker:
    """
    Хранилище трека с периодической публикацией упрощённой ломаной.

    Исходные точки остаются в кольцевом буфере; слушатели получают
    кортеж упрощённых точек, когда истёк интервал текущего уровня
    производительности или накопилась пачка из `batch_size` новых точек.
    """

    def __init__(self, path_config: Path, performance_config: Performance,
                 clock: Optional[Callable[[], int]] = None,
                 rng: Optional[random.Random] = None):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.config = path_config
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._buffer: RingBuffer[PathPoint] = RingBuffer(path_config.capacity)
        self._monitor = PerformanceMonitor(performance_config, name="path")
        self.path_updates: EventChannel[SimplifiedPath] = EventChannel("path")
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self._last_flush_ms: Optional[int] = None
        self._last_simplified: SimplifiedPath = ()
        # Точки, добавленные после последней публикации
        self._pending = 0
        self._metrics = {"update_count": 0, "average_update_ms": 0.0}

    # ---------- Точки ----------
    def _generate_id(self, timestamp_ms: int) -> str:
        suffix = "".join(self._rng.choice(_ID_ALPHABET) for _ in range(9))
        return f"point_{timestamp_ms}_{suffix}"

    def add_point(self, point: Union[FusedPosition, PathPoint]) -> PathPoint:
        """
        Добавляет точку в буфер и при необходимости публикует обновление.

        Returns:
            Сохранённая точка с присвоенным идентификатором
        """
        with self._lock:
            if isinstance(point, PathPoint):
                stored = point
            else:
                stored = PathPoint(lat=point.lat, lng=point.lng,
                                   timestamp_ms=point.timestamp_ms,
                                   id=self._generate_id(point.timestamp_ms))
            self._buffer.push(stored)
            self._pending += 1
            self._schedule_flush()
            return stored

    def _interval_elapsed(self) -> bool:
        if self._last_flush_ms is None:
            return True
        return self._clock() - self._last_flush_ms >= self._monitor.settings.update_interval_ms

    def _schedule_flush(self) -> None:
        # Полная пачка точек публикуется, не дожидаясь интервала
        if self._interval_elapsed() or self._pending >= self._monitor.settings.batch_size:
            self.flush()

    def flush_if_due(self) -> Optional[SimplifiedPath]:
        """
        Публикует точки, пришедшие после последней публикации, если
        интервал уровня истёк. Вызывается по таймеру обслуживания, чтобы
        хвост трека не ждал следующей точки.
        """
        with self._lock:
            if self._pending == 0 or not self._interval_elapsed():
                return None
            return self.flush()

    def flush(self) -> Optional[SimplifiedPath]:
        """
        Упрощает текущий трек и публикует его слушателям.

        Returns:
            Опубликованный кортеж или None, если точек меньше двух
        """
        with self._lock:
            points = self._buffer.to_list()
            if len(points) < 2:
                return None

            tolerance = self._monitor.settings.simplification_tolerance
            started = time.perf_counter()
            simplified = tuple(douglas_peucker(points, tolerance))
            elapsed_ms = (time.perf_counter() - started) * 1000.0

            self._record(elapsed_ms)
            self._last_flush_ms = self._clock()
            self._last_simplified = simplified
            self._pending = 0
            self.logger.debug(
                f"Трек упрощён: {len(points)} -> {len(simplified)} точек за {elapsed_ms:.2f} мс"
            )
            self.path_updates.publish(simplified)
            return simplified

    def _record(self, elapsed_ms: float) -> None:
        count = self._metrics["update_count"] + 1
        average = self._metrics["average_update_ms"]
        self._metrics["update_count"] = count
        self._metrics["average_update_ms"] = (average * (count - 1) + elapsed_ms) / count
        self._monitor.record(elapsed_ms)

    # ---------- Доступ ----------
    def get_simplified_path(self) -> SimplifiedPath:
        """Упрощённый трек по текущему буферу с текущим допуском."""
        with self._lock:
            points = self._buffer.to_list()
            return tuple(douglas_peucker(points, self._monitor.settings.simplification_tolerance))

    def get_current_path(self) -> SimplifiedPath:
        with self._lock:
            return tuple(self._buffer.to_list())

    @property
    def last_published(self) -> SimplifiedPath:
        return self._last_simplified

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    def update_settings(self, tier: PerformanceTier, **changes: Any) -> Tier:
        """Меняет параметры уровня производительности трекера (см. PerformanceMonitor.update_settings)."""
        with self._lock:
            return self._monitor.update_settings(tier, **changes)

    def performance_metrics(self) -> Dict[str, Any]:
        with self._lock:
            settings = self._monitor.settings
            return {
                "update_count": self._metrics["update_count"],
                "average_update_ms": self._metrics["average_update_ms"],
                "memory_usage_bytes": len(self._buffer) * self.config.bytes_per_point,
                "tier": self._monitor.tier.value,
                "batch_size": settings.batch_size,
                "update_interval_ms": settings.update_interval_ms,
                "simplification_tolerance": settings.simplification_tolerance,
                "buffer_size": len(self._buffer),
                "buffer_capacity": self._buffer.capacity,
            }

    def reset(self) -> None:
        with self._lock:
            self._buffer.clear()
            self._monitor.reset()
            self._reset_metrics()
