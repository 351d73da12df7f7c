"""
Фасад сессии отслеживания.

Пример:

    session = TrackingSession(position_provider=provider, motion_provider=sensors)
    session.add_path_listener(lambda path: render(path))
    session.start()
    ...
    status = session.get_status()
    session.stop()
"""
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from .configs import ConfigProvider
from .core.fusion_coordinator import FusionCoordinator, TimerManager, TrackingMode
from .handlers.models import DiagnosticsSnapshot, FusedPosition
from .handlers.providers import MotionProvider, PositionProvider
from .processing.path_tracker import PathTracker, SimplifiedPath
from .services.logger_service import LoggerService


class TrackingSession:
    """
    Владеет одной связкой координатора, трекера пути и конфигурации.

    Итоговые позиции координатора сразу попадают в трекер пути; при
    остановке выполняется финальная публикация упрощённого трека.
    """

    def __init__(self,
                 position_provider: PositionProvider,
                 motion_provider: Optional[MotionProvider] = None,
                 config: Optional[ConfigProvider] = None,
                 clock: Optional[Callable[[], int]] = None,
                 timer_manager: Optional[TimerManager] = None,
                 on_final_position: Optional[Callable[[FusedPosition], None]] = None):
        self.config = config or ConfigProvider()
        if not LoggerService.is_configured():
            LoggerService.configure_from(self.config.data.logging)
        self.logger = LoggerService.get_logger(self.__class__.__name__)

        data = self.config.data
        self.coordinator = FusionCoordinator(
            data,
            position_provider,
            motion_provider,
            clock=clock,
            timer_manager=timer_manager,
            on_final_position=on_final_position,
        )
        self.path_tracker = PathTracker(data.path, data.performance, clock=clock)
        self.coordinator.add_position_listener(self._on_position)
        self.coordinator.maintenance_ticks.add_listener(self._on_maintenance_tick)

    def _on_position(self, position: FusedPosition) -> None:
        # Повторно выданные позиции не добавляют точек в трек
        if position.estimated:
            return
        self.path_tracker.add_point(position)

    def _on_maintenance_tick(self, now_ms: int) -> None:
        # Хвост трека публикуется и без новых точек
        self.path_tracker.flush_if_due()

    # ---------- Жизненный цикл ----------
    def start(self, mode: Optional[TrackingMode] = None) -> None:
        self.coordinator.start_tracking(mode)

    def stop(self) -> Optional[FusedPosition]:
        final_position = self.coordinator.stop_tracking()
        self.path_tracker.flush()
        return final_position

    # ---------- Слушатели ----------
    def add_position_listener(self, listener: Callable[[FusedPosition], None]) -> Callable[[], None]:
        return self.coordinator.add_position_listener(listener)

    def remove_position_listener(self, listener: Callable[[FusedPosition], None]) -> bool:
        return self.coordinator.remove_position_listener(listener)

    def add_path_listener(self, listener: Callable[[SimplifiedPath], None]) -> Callable[[], None]:
        return self.path_tracker.path_updates.add_listener(listener)

    def remove_path_listener(self, listener: Callable[[SimplifiedPath], None]) -> bool:
        return self.path_tracker.path_updates.remove_listener(listener)

    # ---------- Диагностика ----------
    def get_status(self) -> DiagnosticsSnapshot:
        """
        Снимок координатора с заполненными данными трекера пути.

        performance_tier относится к координатору, path_tier к трекеру пути.
        """
        snapshot = self.coordinator.snapshot()
        return replace(
            snapshot,
            path_tier=self.path_tracker.monitor.tier.value,
            buffer_size=len(self.path_tracker),
            buffer_capacity=self.path_tracker.capacity,
        )

    def get_simplified_path(self) -> SimplifiedPath:
        return self.path_tracker.get_simplified_path()

    def performance_metrics(self) -> Dict[str, Any]:
        return {
            "fusion": self.coordinator.monitor.metrics(),
            "path": self.path_tracker.performance_metrics(),
        }
