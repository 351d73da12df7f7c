"""
Модуль координации слияния местоположения.

Принимает сырые отсчёты провайдеров, прогоняет их через фильтр Калмана и
классификатор окружения, при длительной потере GPS переключается на
счисление пути и выдаёт единый поток итоговых позиций.
"""

import math
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Tuple

from ..configs.schema import RootConfig
from ..errors import (AcquisitionTimeout, FusionEngineError, InvalidSample,
                      NumericDegeneracy, OutlierRejected, PermissionDenied,
                      ProviderUnavailable, SensorUnavailable)
from ..handlers.models import (DiagnosticsSnapshot, EnvironmentProfile, FusedPosition,
                               MotionSample, OrientationSample, PositionSource,
                               ProfileParameters, ProviderOptions, QualityMetrics,
                               RawPositionSample, StepEvent, ValidationResult)
from ..handlers.position_handler import GateDecision, PositionDataHandler
from ..handlers.providers import MotionProvider, PositionProvider, Subscription
from ..processing.environment_classifier import EnvironmentClassifier
from ..processing.inertial_estimator import InertialEstimator
from ..processing.position_filter import PositionFilter
from ..services.events import EventChannel
from ..services.logger_service import LoggerService
from ..services.performance_monitor import PerformanceMonitor
from ..utils.geometry import haversine_m


class TrackingState(Enum):
    """Состояния сессии отслеживания."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    TRACKING = "tracking"
    DEGRADED = "degraded"
    STOPPED = "stopped"


class TrackingMode(Enum):
    """Режим использования датчиков."""
    AUTO = "auto"
    GPS_ONLY = "gps_only"


ACTIVE_STATES = (TrackingState.INITIALIZING, TrackingState.TRACKING, TrackingState.DEGRADED)


@dataclass(frozen=True)
class EnvironmentChange:
    old: EnvironmentProfile
    new: EnvironmentProfile
    parameters: ProfileParameters


class TimerManager(Protocol):
    """Протокол для управления таймерами."""

    def start_timer(self, interval: float, callback: Callable[[], None]) -> None:
        """Запустить однократный таймер (интервал в секундах)."""
        ...

    def stop_all_timers(self) -> None:
        """Остановить все таймеры."""
        ...


class DefaultTimerManager:
    """Реализация управления таймерами на threading.Timer."""

    def __init__(self):
        self._timers: List[threading.Timer] = []
        self._lock = threading.Lock()

    def start_timer(self, interval: float, callback: Callable[[], None]) -> None:
        """Запустить таймер."""
        timer = threading.Timer(interval, callback)
        timer.daemon = True
        with self._lock:
            # Отработавшие таймеры больше не нужны
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

    def stop_all_timers(self) -> None:
        """Остановить все таймеры."""
        with self._lock:
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()


class FusionCoordinator:
    """
    Конечный автомат сессии: IDLE → INITIALIZING → TRACKING ⇄ DEGRADED → STOPPED.

    Все обратные вызовы провайдеров и таймера выполняются под одной
    реентерабельной блокировкой, поэтому состояние фильтра, счётчики и
    истории меняет только один поток за раз. После stop_tracking любые
    запоздавшие вызовы ничего не меняют.
    """

    def __init__(self,
                 config: RootConfig,
                 position_provider: PositionProvider,
                 motion_provider: Optional[MotionProvider] = None,
                 clock: Optional[Callable[[], int]] = None,
                 timer_manager: Optional[TimerManager] = None,
                 on_final_position: Optional[Callable[[FusedPosition], None]] = None):
        """
        Args:
            config: Валидированная конфигурация
            position_provider: Источник GPS‑отсчётов
            motion_provider: Источник инерциальных данных (может отсутствовать)
            clock: Часы движка в миллисекундах
            timer_manager: Менеджер таймеров обслуживания
            on_final_position: Получатель последней позиции при остановке
        """
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.config = config
        self.fusion_config = config.fusion
        self._lock = threading.RLock()
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._timer_manager = timer_manager or DefaultTimerManager()
        self._on_final_position = on_final_position

        self._position_provider = position_provider
        self._motion_provider = motion_provider
        self._subscriptions: List[Subscription] = []

        # Компоненты
        self.classifier = EnvironmentClassifier(config.environment)
        self.position_filter = PositionFilter(self.classifier.parameters(), config.filter)
        self.handler = PositionDataHandler(config.fusion)
        self.inertial = InertialEstimator(config.inertial)
        self.monitor = PerformanceMonitor(config.performance, name="fusion")
        self.classifier.on_transition(self._on_environment_change)

        # Каналы событий
        self.positions: EventChannel[FusedPosition] = EventChannel("positions")
        self.quality_updates: EventChannel[QualityMetrics] = EventChannel("quality")
        self.environment_changes: EventChannel[EnvironmentChange] = EventChannel("environment")
        self.errors: EventChannel[FusionEngineError] = EventChannel("errors")
        self.maintenance_ticks: EventChannel[int] = EventChannel("maintenance")

        self._state = TrackingState.IDLE
        # Номер сессии; таймеры прошлых сессий сверяют его перед работой
        self._generation = 0
        self._mode = self._default_mode()
        self._reset_session()

        self.logger.info("FusionCoordinator инициализирован")

    def _reset_session(self) -> None:
        self._last_position: Optional[FusedPosition] = None
        self._reference: Optional[Tuple[float, float]] = None
        self._last_accepted_ms: Optional[int] = None
        self._fix_accuracies: Deque[float] = deque(maxlen=self.fusion_config.history_size)
        self._history: Deque[FusedPosition] = deque(maxlen=self.fusion_config.history_size)
        self._quality_window: Deque[float] = deque(maxlen=self.fusion_config.quality_window)
        self._latest_quality: Optional[QualityMetrics] = None
        self._update_interval_ms = self.fusion_config.update_interval_ms
        self._counters = {
            "acquisition_timeouts": 0,
            "sensor_unavailable": 0,
            "emitted_positions": 0,
            "carried_positions": 0,
            "inertial_positions": 0,
            "degraded_entries": 0,
            "processing_errors": 0,
        }

    def _default_mode(self) -> TrackingMode:
        return TrackingMode.GPS_ONLY if self.fusion_config.gps_only else TrackingMode.AUTO

    @contextmanager
    def _thread_safe_operation(self):
        """Контекстный менеджер для потокобезопасных операций."""
        with self._lock:
            yield

    # ---------- Жизненный цикл ----------
    def start_tracking(self, mode: Optional[TrackingMode] = None) -> None:
        """
        Начать сессию отслеживания.

        Raises:
            PermissionDenied: Платформа отказала в доступе к местоположению
            ProviderUnavailable: На устройстве нет провайдера местоположения
        """
        with self._thread_safe_operation():
            if self._state in ACTIVE_STATES:
                self.logger.warning("Отслеживание уже запущено")
                return

            if self._state == TrackingState.STOPPED:
                self._restart_components()

            self._mode = mode or self._default_mode()
            self._state = TrackingState.INITIALIZING
            self._generation += 1
            self.logger.info(f"Запуск отслеживания, режим {self._mode.value}")

            try:
                subscription = self._position_provider.watch_position(
                    self._on_raw_sample, self._on_provider_error, self.provider_options()
                )
            except (PermissionDenied, ProviderUnavailable) as e:
                self.logger.error(f"Не удалось подписаться на местоположение: {e}")
                self._state = TrackingState.IDLE
                raise
            self._subscriptions.append(subscription)

            if self._mode == TrackingMode.AUTO:
                self._start_motion()

            self._schedule_maintenance()

    def _start_motion(self) -> None:
        if self._motion_provider is None:
            self._switch_to_gps_only("провайдер инерциальных данных не задан")
            return
        try:
            subscription = self._motion_provider.watch_motion(
                self._on_motion_sample, self._on_orientation_sample
            )
        except SensorUnavailable as e:
            self._switch_to_gps_only(str(e))
            return
        self._subscriptions.append(subscription)

    def _switch_to_gps_only(self, reason: str) -> None:
        self._counters["sensor_unavailable"] += 1
        self._mode = TrackingMode.GPS_ONLY
        self.logger.info(f"Переход в режим только GPS: {reason}")

    def _restart_components(self) -> None:
        self.classifier.reset()
        self.position_filter.reset()
        self.position_filter.set_profile(self.classifier.parameters())
        self.handler.reset()
        self.inertial.reset()
        self.monitor.reset()
        self._reset_session()

    def stop_tracking(self) -> Optional[FusedPosition]:
        """
        Остановить сессию. Повторные вызовы ничего не делают.

        Returns:
            Последняя выданная позиция (сохраняется как есть) или None
        """
        with self._thread_safe_operation():
            if self._state not in ACTIVE_STATES:
                return self._last_position

            for subscription in self._subscriptions:
                try:
                    subscription.cancel()
                except Exception as e:
                    self.logger.error(f"Ошибка при отмене подписки: {e}")
            self._subscriptions.clear()
            self._timer_manager.stop_all_timers()
            self._generation += 1
            self._state = TrackingState.STOPPED

            final_position = self._last_position
            if final_position is not None and self._on_final_position is not None:
                try:
                    self._on_final_position(final_position)
                except Exception as e:
                    self.logger.error(f"Ошибка при сохранении последней позиции: {e}", exc_info=True)

            self.logger.info("Отслеживание остановлено")
            return final_position

    # ---------- Параметры провайдера ----------
    def provider_options(self) -> ProviderOptions:
        """Параметры подписки с таймаутом по текущему окружению."""
        provider = self.config.provider
        mode = provider.modes[provider.default_mode]
        timeout = provider.environment_timeouts_ms.get(self.classifier.current.value, mode.timeout_ms)
        return ProviderOptions(high_accuracy=mode.high_accuracy, timeout_ms=timeout,
                               max_sample_age_ms=mode.max_sample_age_ms)

    # ---------- Обратные вызовы провайдеров ----------
    def _on_raw_sample(self, sample: RawPositionSample) -> None:
        with self._thread_safe_operation():
            if self._state not in ACTIVE_STATES:
                return
            try:
                with self.monitor.measure():
                    self._process_sample(sample)
            except Exception as e:
                self._counters["processing_errors"] += 1
                self.logger.error(f"Ошибка обработки отсчёта: {e}", exc_info=True)

    def _on_provider_error(self, error: FusionEngineError) -> None:
        with self._thread_safe_operation():
            if self._state not in ACTIVE_STATES:
                return
            if isinstance(error, AcquisitionTimeout):
                self._counters["acquisition_timeouts"] += 1
                self.logger.warning(f"Таймаут получения позиции: {error}")
                return
            if error.fatal:
                self.logger.error(f"Фатальная ошибка провайдера: {error}")
                self.errors.publish(error)
                self.stop_tracking()
                return
            self.logger.warning(f"Ошибка провайдера: {error}")
            self.errors.publish(error)

    def _on_motion_sample(self, sample: MotionSample) -> None:
        with self._thread_safe_operation():
            if self._state not in ACTIVE_STATES or self._mode == TrackingMode.GPS_ONLY:
                return
            try:
                step = self.inertial.ingest_motion(sample)
                if step is not None:
                    self._handle_step(step)
            except Exception as e:
                self._counters["processing_errors"] += 1
                self.logger.error(f"Ошибка обработки ускорения: {e}", exc_info=True)

    def _on_orientation_sample(self, sample: OrientationSample) -> None:
        with self._thread_safe_operation():
            if self._state not in ACTIVE_STATES or self._mode == TrackingMode.GPS_ONLY:
                return
            self.inertial.ingest_orientation(sample)

    # ---------- Обработка GPS ----------
    def _process_sample(self, sample: RawPositionSample) -> None:
        result, reason = self.handler.validate(sample)
        if result != ValidationResult.VALID:
            self.errors.publish(InvalidSample(reason))
            return

        params = self.classifier.parameters()
        if not self.position_filter.is_initialized:
            decision, _ = self.handler.evaluate(sample, params, None)
            self.classifier.classify(sample.accuracy_m)
            if decision == GateDecision.ACCEPT:
                self._initialize_at(sample)
            return

        decision, distance = self.handler.evaluate(sample, params, self._reference)
        self.classifier.classify(sample.accuracy_m)

        if decision in (GateDecision.OUTLIER, GateDecision.FORCED_RESET):
            self.errors.publish(OutlierRejected(
                f"Отсчёт в {distance:.1f} м от опорной точки (порог {params.outlier_threshold_m} м)"
            ))

        if decision in (GateDecision.LOW_ACCURACY, GateDecision.OUTLIER):
            self._emit_carried()
        elif decision == GateDecision.FORCED_RESET:
            self._initialize_at(sample, forced=True)
        else:
            self._accept(sample)

    def _initialize_at(self, sample: RawPositionSample, forced: bool = False) -> None:
        self.position_filter.initialize(sample)
        self.handler.reset()
        self._reference = (sample.latitude, sample.longitude)
        self._fix_accuracies.append(sample.accuracy_m)
        self._mark_accepted()

        confidence = self._estimator_confidence(sample.accuracy_m, 0.0)
        position = FusedPosition(
            lat=sample.latitude,
            lng=sample.longitude,
            accuracy_estimate=sample.accuracy_m,
            confidence=confidence,
            source=PositionSource.GPS,
            timestamp_ms=sample.timestamp_ms,
        )
        if forced:
            self.logger.warning("Фильтр переинициализирован после серии выбросов")
        self._emit(position)
        self.inertial.update_gps_position(sample.latitude, sample.longitude,
                                          sample.accuracy_m, sample.timestamp_ms)

    def _accept(self, sample: RawPositionSample) -> None:
        dt = self.position_filter.time_step(sample.timestamp_ms, self.fusion_config.default_delta_seconds)
        degeneracies = self.position_filter.degeneracy_count
        self.position_filter.predict(dt)
        self.position_filter.update((sample.latitude, sample.longitude), sample.accuracy_m)
        if self.position_filter.degeneracy_count > degeneracies:
            self.errors.publish(NumericDegeneracy("Вырожденная матрица инноваций заменена единичной"))
        lat, lng, v_lat, v_lng = self.position_filter.current_estimate()

        self._reference = (lat, lng)
        self._fix_accuracies.append(sample.accuracy_m)
        self._mark_accepted()

        confidence = self._estimator_confidence(sample.accuracy_m, dt)
        candidate = FusedPosition(
            lat=lat,
            lng=lng,
            accuracy_estimate=sample.accuracy_m * self.fusion_config.accuracy_estimate_factor,
            confidence=confidence,
            source=PositionSource.GPS,
            timestamp_ms=sample.timestamp_ms,
            velocity_lat=v_lat,
            velocity_lng=v_lng,
        )
        quality = self.evaluate_quality(candidate, sample.accuracy_m)
        self._quality_window.append(quality.reliability_score)
        quality = replace(quality,
                          rolling_reliability=sum(self._quality_window) / len(self._quality_window))
        self._latest_quality = quality
        self.quality_updates.publish(quality)

        if quality.reliability_score < self.fusion_config.confidence_threshold and self._last_position is not None:
            self.logger.warning(
                f"Недостаточное качество позиции ({quality.reliability_score:.2f}), "
                "повторно выдаётся предыдущая"
            )
            self._emit_carried()
            return

        self._emit(candidate)
        self.inertial.update_gps_position(lat, lng, sample.accuracy_m, sample.timestamp_ms)

    def _mark_accepted(self) -> None:
        self._last_accepted_ms = self._clock()
        if self._state != TrackingState.TRACKING:
            if self._state == TrackingState.DEGRADED:
                self.logger.info("GPS восстановлен, возврат в TRACKING")
            self._state = TrackingState.TRACKING

    def _emit_carried(self) -> None:
        """Повторно выдаёт последнюю позицию с пониженной достоверностью."""
        previous = self._last_position
        if previous is None:
            return
        self._counters["carried_positions"] += 1
        self._publish(replace(previous, estimated=True, source=PositionSource.CARRIED,
                              confidence=self.fusion_config.carried_confidence))

    # ---------- Оценки качества ----------
    def _estimator_confidence(self, accuracy_m: float, delta_seconds: float) -> float:
        """
        Достоверность оценки по точности отсчёта, давности предыдущего
        фикса и средней точности последних пяти фиксов.
        """
        min_accuracy = self.classifier.parameters().min_acceptable_accuracy_m
        confidence = max(0.1, 1.0 - accuracy_m / min_accuracy)

        if delta_seconds > 5:
            confidence *= max(0.3, 1.0 - delta_seconds / 30.0)

        if len(self._fix_accuracies) > 5:
            recent = list(self._fix_accuracies)[-5:]
            average = sum(recent) / len(recent)
            confidence *= max(0.2, 1.0 - average / min_accuracy)

        return max(0.1, min(1.0, confidence))

    def evaluate_quality(self, candidate: FusedPosition, accuracy_m: float) -> QualityMetrics:
        """
        Метрики качества новой позиции относительно последней выданной.

        reliability = 0.4·accuracy + 0.3·consistency + 0.3·confidence
        """
        accuracy_score = max(0.0, 1.0 - accuracy_m / 100.0)

        consistency_score = 1.0
        previous = self._last_position
        if previous is not None:
            distance = haversine_m(previous.lat, previous.lng, candidate.lat, candidate.lng)
            interval_s = max(0.0, (candidate.timestamp_ms - previous.timestamp_ms) / 1000.0)
            expected_max = self.fusion_config.max_speed_ms * interval_s
            if distance > expected_max:
                consistency_score = max(0.1, expected_max / distance)

        reliability = 0.4 * accuracy_score + 0.3 * consistency_score + 0.3 * candidate.confidence
        return QualityMetrics(
            accuracy_score=accuracy_score,
            consistency_score=consistency_score,
            reliability_score=reliability,
            estimator_confidence=candidate.confidence,
        )

    # ---------- Инерциальная ветвь ----------
    def _handle_step(self, step: StepEvent) -> None:
        self._check_degraded(self._clock())
        estimate = self.inertial.estimate_position_from_step(step)
        if estimate is None or self._state != TrackingState.DEGRADED:
            return
        confidence = self.degraded_confidence(self._clock())
        self._counters["inertial_positions"] += 1
        self._emit(replace(estimate, confidence=confidence))

    def degraded_confidence(self, now_ms: int) -> float:
        """
        Достоверность счисления пути: потолок инерциальной достоверности,
        экспоненциально убывающий с давностью последнего GPS‑фикса.
        """
        ceiling = self.config.inertial.inertial_confidence
        if self._last_accepted_ms is None:
            return ceiling
        overdue = max(0, now_ms - self._last_accepted_ms - self.fusion_config.max_sensor_fallback_ms)
        return ceiling * math.exp(-overdue / self.fusion_config.confidence_decay_ms)

    def _check_degraded(self, now_ms: int) -> None:
        if self._state != TrackingState.TRACKING or self._last_accepted_ms is None:
            return
        if now_ms - self._last_accepted_ms > self.fusion_config.max_sensor_fallback_ms:
            self._state = TrackingState.DEGRADED
            self._counters["degraded_entries"] += 1
            self.logger.warning(
                f"Нет GPS {now_ms - self._last_accepted_ms} мс, переход в DEGRADED"
            )

    # ---------- Выдача позиций ----------
    def _emit(self, position: FusedPosition) -> None:
        self._last_position = position
        self._history.append(position)
        self._publish(position)

    def _publish(self, position: FusedPosition) -> None:
        self._counters["emitted_positions"] += 1
        self.positions.publish(position)

    def _on_environment_change(self, old: EnvironmentProfile, new: EnvironmentProfile,
                               params: ProfileParameters) -> None:
        self.position_filter.set_profile(params)
        self.environment_changes.publish(EnvironmentChange(old=old, new=new, parameters=params))

    # ---------- Периодическое обслуживание ----------
    def _schedule_maintenance(self) -> None:
        generation = self._generation
        self._timer_manager.start_timer(self._update_interval_ms / 1000.0,
                                        lambda: self._on_maintenance_tick(generation))

    def _on_maintenance_tick(self, generation: int) -> None:
        with self._thread_safe_operation():
            # Таймер, сработавший до stop_tracking, может дождаться блокировки
            # уже в следующей сессии
            if generation != self._generation or self._state not in ACTIVE_STATES:
                return
            try:
                self.perform_maintenance()
            except Exception as e:
                self._counters["processing_errors"] += 1
                self.logger.error(f"Ошибка периодического обслуживания: {e}", exc_info=True)
            finally:
                self._schedule_maintenance()

    def perform_maintenance(self) -> None:
        """Проверка потери GPS, подстройка интервала и очистка истории."""
        with self._thread_safe_operation():
            now = self._clock()
            self._check_degraded(now)
            self._adjust_interval()
            self._prune_history(now)
            self.maintenance_ticks.publish(now)

    def _adjust_interval(self) -> None:
        """
        Интервал по окружению (город с плохой точностью 2000 мс, открытая
        местность с хорошей 500 мс, иначе базовый), ×1.2 при медленной
        обработке. Уровень производительности задаёт нижнюю границу:
        HIGH допускает 500 мс, NORMAL не быстрее 1000 мс, LOW не быстрее 2000 мс.
        """
        fusion = self.fusion_config
        average_accuracy = self.average_accuracy
        environment = self.classifier.current

        interval = float(fusion.update_interval_ms)
        if average_accuracy is not None:
            if environment == EnvironmentProfile.URBAN and average_accuracy > 30:
                interval = 2000.0
            elif environment == EnvironmentProfile.RURAL and average_accuracy < 15:
                interval = 500.0

        average_ms = self.monitor.average_ms
        if average_ms is not None and average_ms > fusion.slow_processing_ms:
            self.logger.warning(f"Медленная обработка ({average_ms:.1f} мс), интервал увеличен")
            interval = min(fusion.max_update_interval_ms, interval * 1.2)

        interval = max(interval, float(self.monitor.settings.update_interval_ms))
        interval = max(fusion.min_update_interval_ms, min(fusion.max_update_interval_ms, interval))
        if int(interval) != self._update_interval_ms:
            self.logger.info(f"Интервал обслуживания: {self._update_interval_ms} -> {int(interval)} мс")
            self._update_interval_ms = int(interval)

    def _prune_history(self, now_ms: int) -> None:
        cutoff = now_ms - self.fusion_config.history_max_age_ms
        while self._history and self._history[0].timestamp_ms <= cutoff:
            self._history.popleft()

    # ---------- Доступ ----------
    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def mode(self) -> TrackingMode:
        return self._mode

    @property
    def last_position(self) -> Optional[FusedPosition]:
        return self._last_position

    @property
    def latest_quality(self) -> Optional[QualityMetrics]:
        return self._latest_quality

    @property
    def update_interval_ms(self) -> int:
        return self._update_interval_ms

    @property
    def average_accuracy(self) -> Optional[float]:
        if not self._fix_accuracies:
            return None
        return sum(self._fix_accuracies) / len(self._fix_accuracies)

    def history(self) -> Tuple[FusedPosition, ...]:
        with self._thread_safe_operation():
            return tuple(self._history)

    def add_position_listener(self, listener: Callable[[FusedPosition], None]) -> Callable[[], None]:
        return self.positions.add_listener(listener)

    def remove_position_listener(self, listener: Callable[[FusedPosition], None]) -> bool:
        return self.positions.remove_listener(listener)

    def add_step_listener(self, listener: Callable[[StepEvent], None]) -> Callable[[], None]:
        return self.inertial.step_events.add_listener(listener)

    def counters(self) -> Dict[str, int]:
        with self._thread_safe_operation():
            stats = self.handler.get_processing_stats()
            counters = dict(self._counters)
            counters.update({
                "total_samples": stats["total_processed"],
                "invalid_samples": stats["invalid_count"],
                "low_accuracy_rejections": stats["low_accuracy_count"],
                "outliers_rejected": stats["outlier_count"],
                "forced_resets": stats["forced_reset_count"],
                "consecutive_outliers": stats["consecutive_outliers"],
                "numeric_degeneracies": self.position_filter.degeneracy_count,
                "environment_transitions": self.classifier.transition_count,
            })
            return counters

    def snapshot(self) -> DiagnosticsSnapshot:
        """Снимок состояния для операционных инструментов."""
        with self._thread_safe_operation():
            return DiagnosticsSnapshot(
                state=self._state.value,
                environment=self.classifier.current.value,
                tracking_mode=self._mode.value,
                quality=self._latest_quality,
                performance_tier=self.monitor.tier.value,
                update_interval_ms=self._update_interval_ms,
                buffer_size=len(self._history),
                buffer_capacity=self.fusion_config.history_size,
                last_position=self._last_position,
                counters=self.counters(),
                inertial=self.inertial.status(),
            )

    def status(self) -> Dict[str, Any]:
        return self.snapshot().to_dict()
