# fusion_engine/services/performance_monitor.py
import time
from collections import deque
from contextlib import contextmanager
from enum import Enum
from typing import Deque, Dict, Optional

from ..configs.schema import Performance, Tier
from .logger_service import LoggerService


class PerformanceTier(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class PerformanceMonitor:
    """
    Скользящее среднее времени обработки и выбор уровня производительности.

    Среднее больше `slow_threshold_ms` переводит в LOW, меньше
    `fast_threshold_ms` в HIGH, иначе NORMAL.
    """

    def __init__(self, config: Performance, name: str = "default"):
        self.logger = LoggerService.get_logger(f"{self.__class__.__name__}.{name}")
        self.config = config
        self._samples: Deque[float] = deque(maxlen=config.window)
        self._tier = PerformanceTier.NORMAL

    @contextmanager
    def measure(self):
        """Замеряет время выполнения блока по настенным часам."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.record((time.perf_counter() - started) * 1000.0)

    def record(self, elapsed_ms: float) -> PerformanceTier:
        self._samples.append(elapsed_ms)
        new_tier = self.tier_for(self.average_ms)
        if new_tier != self._tier:
            self.logger.info(
                f"Уровень производительности: {self._tier.value} -> {new_tier.value} "
                f"(среднее {self.average_ms:.1f} мс)"
            )
            self._tier = new_tier
        return self._tier

    def tier_for(self, average_ms: Optional[float]) -> PerformanceTier:
        if average_ms is None:
            return PerformanceTier.NORMAL
        if average_ms > self.config.slow_threshold_ms:
            return PerformanceTier.LOW
        if average_ms < self.config.fast_threshold_ms:
            return PerformanceTier.HIGH
        return PerformanceTier.NORMAL

    @property
    def average_ms(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    @property
    def tier(self) -> PerformanceTier:
        return self._tier

    @property
    def settings(self) -> Tier:
        return self.config.tiers[self._tier.value]

    def update_settings(self, tier: PerformanceTier, *,
                        batch_size: Optional[int] = None,
                        update_interval_ms: Optional[int] = None,
                        simplification_tolerance: Optional[float] = None) -> Tier:
        """
        Меняет параметры одного уровня. Незаданные поля сохраняются,
        новые значения проходят валидацию модели Tier.

        Returns:
            Новые параметры уровня
        """
        current = self.config.tiers[tier.value]
        updated = Tier(
            batch_size=current.batch_size if batch_size is None else batch_size,
            update_interval_ms=(current.update_interval_ms
                                if update_interval_ms is None else update_interval_ms),
            simplification_tolerance=(current.simplification_tolerance
                                      if simplification_tolerance is None else simplification_tolerance),
        )
        tiers = dict(self.config.tiers)
        tiers[tier.value] = updated
        # Конфиг секции общий для нескольких мониторов, меняем только свою копию
        self.config = self.config.model_copy(update={"tiers": tiers})
        self.logger.info(f"Параметры уровня {tier.value} обновлены: {updated}")
        return updated

    def metrics(self) -> Dict[str, object]:
        return {
            "tier": self._tier.value,
            "average_ms": self.average_ms,
            "samples": len(self._samples),
        }

    def reset(self) -> None:
        self._samples.clear()
        self._tier = PerformanceTier.NORMAL
