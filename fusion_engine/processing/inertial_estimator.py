# fusion_engine/processing/inertial_estimator.py
"""
Инерциальная оценка движения: подсчёт шагов, счисление пути по курсу
и калибровка длины шага по надёжным GPS‑фиксам.
"""
import math
from collections import deque
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

import numpy as np

from ..configs.schema import Inertial
from ..handlers.models import (FusedPosition, MotionSample, OrientationSample,
                               PositionSource, StepEvent)
from ..services.events import EventChannel
from ..services.logger_service import LoggerService
from ..utils.geometry import haversine_m, normalize_heading, project

# Интервал между отсчётами акселерометра, если метки времени не помогают
DEFAULT_MOTION_INTERVAL_S = 0.1


class InertialEstimator:
    """
    Оценщик положения по инерциальным датчикам.

    Работает независимо от фильтра Калмана: получает сырые ускорения и
    ориентацию, а от координатора только надёжные GPS‑фиксы.
    """

    def __init__(self, config: Inertial):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.config = config
        self.alpha = config.low_pass_alpha

        # ---------- Ограниченные истории ----------
        self._motion: Deque[MotionSample] = deque(maxlen=config.motion_history)
        self._orientation: Deque[OrientationSample] = deque(maxlen=config.orientation_history)
        self._steps: Deque[StepEvent] = deque(maxlen=config.step_history)

        self.step_events: EventChannel[StepEvent] = EventChannel("steps")
        self.velocity_events: EventChannel[Dict[str, float]] = EventChannel("velocity")

        self._init_state()
        self.logger.info("InertialEstimator инициализирован")

    def _init_state(self) -> None:
        self.step_count = 0
        self.average_step_length_m = self.config.average_step_length_m
        self.heading = 0.0
        self.pitch = 0.0
        self.roll = 0.0
        self.velocity = np.zeros(2)
        self.bias = np.zeros(3)
        self.is_calibrated = False
        self.rejected_samples = 0

        self._last_step_ms: Optional[int] = None
        self._last_motion_ms: Optional[int] = None
        self._position: Optional[Tuple[float, float]] = None
        self._last_gps_ms: Optional[int] = None
        self._last_gps_accuracy = 0.0
        self._distance_since_fix = 0.0
        self._calibration_anchor: Optional[Tuple[float, float]] = None
        self._steps_since_calibration = 0

    # ---------- Входные потоки ----------
    def _low_pass(self, previous: float, value: float) -> float:
        return self.alpha * previous + (1.0 - self.alpha) * value

    def ingest_motion(self, sample: MotionSample) -> Optional[StepEvent]:
        """
        Принимает отсчёт ускорения, фильтрует его и проверяет на шаг.

        Returns:
            Событие шага или None
        """
        if not all(math.isfinite(v) for v in (sample.ax, sample.ay, sample.az)):
            self.rejected_samples += 1
            self.logger.debug(f"Отсчёт ускорения отброшен: {sample}")
            return None

        if self._motion:
            last = self._motion[-1]
            filtered = MotionSample(
                ax=self._low_pass(last.ax, sample.ax),
                ay=self._low_pass(last.ay, sample.ay),
                az=self._low_pass(last.az, sample.az),
                timestamp_ms=sample.timestamp_ms,
            )
        else:
            filtered = sample
        self._motion.append(filtered)

        if self._gps_is_stale(sample.timestamp_ms):
            self._estimate_velocity(filtered)
        self._last_motion_ms = sample.timestamp_ms

        step = self.detect_step(filtered)
        if step is not None:
            self.step_events.publish(step)
        return step

    def ingest_orientation(self, sample: OrientationSample) -> None:
        """Курс берётся напрямую, тангаж и крен сглаживаются."""
        if not all(math.isfinite(v) for v in (sample.heading, sample.pitch, sample.roll)):
            self.rejected_samples += 1
            self.logger.debug(f"Отсчёт ориентации отброшен: {sample}")
            return

        heading = normalize_heading(sample.heading)
        if self._orientation:
            last = self._orientation[-1]
            pitch = self._low_pass(last.pitch, sample.pitch)
            roll = self._low_pass(last.roll, sample.roll)
        else:
            pitch, roll = sample.pitch, sample.roll

        self._orientation.append(OrientationSample(heading, pitch, roll, sample.timestamp_ms))
        self.heading = heading
        self.pitch = pitch
        self.roll = roll

    # ---------- Шаги ----------
    def detect_step(self, filtered: MotionSample) -> Optional[StepEvent]:
        """
        Регистрирует шаг, если модуль ускорения выше порога и с прошлого
        шага прошло не меньше `min_step_interval_ms`.
        """
        magnitude = float(np.linalg.norm([filtered.ax, filtered.ay, filtered.az]))
        if magnitude <= self.config.step_threshold:
            return None
        if (self._last_step_ms is not None
                and filtered.timestamp_ms - self._last_step_ms < self.config.min_step_interval_ms):
            return None

        self.step_count += 1
        self._steps_since_calibration += 1
        self._last_step_ms = filtered.timestamp_ms
        step = StepEvent(step_index=self.step_count, magnitude=magnitude,
                         timestamp_ms=filtered.timestamp_ms)
        self._steps.append(step)
        self.logger.debug(f"Шаг #{step.step_index}: |a|={magnitude:.2f}")
        return step

    def estimate_position_from_step(self, step: StepEvent) -> Optional[FusedPosition]:
        """
        Счисление пути на один шаг по текущему курсу.

        Срабатывает только если с последнего надёжного GPS‑фикса прошло
        больше `max_gps_gap_ms`; иначе рабочая позиция не меняется.
        """
        if self._position is None or self._last_gps_ms is None:
            return None
        if step.timestamp_ms - self._last_gps_ms <= self.config.max_gps_gap_ms:
            return None

        lat, lng = project(self._position[0], self._position[1],
                           self.average_step_length_m, self.heading)
        self._position = (lat, lng)
        self._distance_since_fix += self.average_step_length_m

        return FusedPosition(
            lat=lat,
            lng=lng,
            accuracy_estimate=self._last_gps_accuracy + self.config.drift_ratio * self._distance_since_fix,
            confidence=self.config.inertial_confidence,
            source=PositionSource.INERTIAL,
            timestamp_ms=step.timestamp_ms,
        )

    # ---------- Привязка к GPS ----------
    def update_gps_position(self, lat: float, lng: float, accuracy_m: float,
                            timestamp_ms: int) -> bool:
        """
        Принимает надёжный GPS‑фикс: сбрасывает рабочую позицию и
        пробует откалибровать длину шага.

        Returns:
            True, если длина шага была обновлена
        """
        self._position = (lat, lng)
        self._last_gps_ms = timestamp_ms
        self._last_gps_accuracy = accuracy_m
        self._distance_since_fix = 0.0
        return self.calibrate_step_length(lat, lng, accuracy_m)

    def calibrate_step_length(self, lat: float, lng: float, accuracy_m: float) -> bool:
        """
        Калибровка длины шага по пройденному между фиксами расстоянию.

        Args:
            lat, lng: Надёжная позиция
            accuracy_m: Её точность, м

        Returns:
            True, если средняя длина шага изменилась
        """
        if accuracy_m >= self.config.calibration_max_accuracy_m:
            return False

        if self._calibration_anchor is None:
            self._calibration_anchor = (lat, lng)
            self._steps_since_calibration = 0
            return False

        steps = self._steps_since_calibration
        if steps < self.config.calibration_min_steps:
            return False

        distance = haversine_m(self._calibration_anchor[0], self._calibration_anchor[1], lat, lng)
        implied = distance / steps
        self._calibration_anchor = (lat, lng)
        self._steps_since_calibration = 0

        if not self.config.min_step_length_m <= implied <= self.config.max_step_length_m:
            self.logger.debug(f"Калибровка пропущена: длина шага {implied:.2f} м вне диапазона")
            return False

        weight = self.config.calibration_weight
        self.average_step_length_m = (1.0 - weight) * self.average_step_length_m + weight * implied
        self.logger.info(f"Калибровка длины шага: {self.average_step_length_m:.2f} м")
        return True

    # ---------- Скорость и смещение датчика ----------
    def _gps_is_stale(self, timestamp_ms: int) -> bool:
        return (self._last_gps_ms is None
                or timestamp_ms - self._last_gps_ms > self.config.max_gps_gap_ms)

    def _estimate_velocity(self, filtered: MotionSample) -> None:
        """Интегрирование горизонтального ускорения с затуханием."""
        dt = DEFAULT_MOTION_INTERVAL_S
        if self._last_motion_ms is not None and filtered.timestamp_ms > self._last_motion_ms:
            dt = (filtered.timestamp_ms - self._last_motion_ms) / 1000.0

        linear = np.array([filtered.ax, filtered.ay]) - self.bias[:2]
        self.velocity = (self.velocity + linear * dt) * self.config.velocity_decay
        self.velocity_events.publish({
            "vx": float(self.velocity[0]),
            "vy": float(self.velocity[1]),
            "speed": float(np.linalg.norm(self.velocity)),
            "timestamp_ms": filtered.timestamp_ms,
        })

    def calibrate_sensor_bias(self, samples: Iterable[MotionSample]) -> Tuple[float, float, float]:
        """
        Смещение акселерометра как среднее по отсчётам, снятым в покое.

        Returns:
            (bx, by, bz)
        """
        data = np.array([[s.ax, s.ay, s.az] for s in samples], dtype=float)
        if data.size == 0:
            self.logger.warning("Калибровка смещения без отсчётов пропущена")
            return tuple(self.bias)  # type: ignore[return-value]
        self.bias = data.mean(axis=0)
        self.is_calibrated = True
        self.logger.info(f"Смещение акселерометра: {np.round(self.bias, 3).tolist()}")
        return float(self.bias[0]), float(self.bias[1]), float(self.bias[2])

    # ---------- Состояние ----------
    @property
    def position(self) -> Optional[Tuple[float, float]]:
        return self._position

    @property
    def last_gps_ms(self) -> Optional[int]:
        return self._last_gps_ms

    @property
    def steps_since_calibration(self) -> int:
        return self._steps_since_calibration

    @property
    def estimated_distance_m(self) -> float:
        return self.step_count * self.average_step_length_m

    def history_sizes(self) -> Dict[str, int]:
        return {
            "motion": len(self._motion),
            "orientation": len(self._orientation),
            "step": len(self._steps),
        }

    def status(self) -> Dict[str, Any]:
        return {
            "is_calibrated": self.is_calibrated,
            "step_count": self.step_count,
            "average_step_length_m": self.average_step_length_m,
            "estimated_distance_m": self.estimated_distance_m,
            "heading": self.heading,
            "position": self._position,
            "last_gps_ms": self._last_gps_ms,
            "speed": float(np.linalg.norm(self.velocity)),
            "history": self.history_sizes(),
        }

    def reset(self) -> None:
        self._motion.clear()
        self._orientation.clear()
        self._steps.clear()
        self._init_state()
