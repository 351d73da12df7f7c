# fusion_engine/processing/position_filter.py
"""
Фильтр Калмана с моделью постоянной скорости.

Вектор состояния [lat, lng, v_lat, v_lng] в градусах и градусах в секунду,
измеряются только координаты.
"""
from typing import Optional, Tuple

import numpy as np

from ..configs.schema import Filter
from ..handlers.models import ProfileParameters, RawPositionSample
from ..services.logger_service import LoggerService
from ..utils.linalg import (identity, inverse_2x2, mat_add, mat_mul, mat_sub,
                            symmetrize, transpose)

# Матрица наблюдения: из состояния видны только широта и долгота
OBSERVATION = np.array([[1.0, 0.0, 0.0, 0.0],
                        [0.0, 1.0, 0.0, 0.0]])


class PositionFilter:
    """
    Рекурсивная оценка позиции и скорости.

    Не выполняет ввода-вывода; при одинаковых входных данных результат
    детерминирован. Смена профиля окружения меняет только шумы процесса
    и не сбрасывает состояние.
    """

    def __init__(self, params: ProfileParameters, config: Optional[Filter] = None):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.config = config or Filter()
        self._params = params
        self._state: Optional[np.ndarray] = None
        self._covariance: np.ndarray = identity(4) * self.config.initial_covariance
        self._process_noise = self._build_process_noise(params)
        self._last_timestamp_ms: Optional[int] = None
        self.degeneracy_count = 0

    # ---------- Параметры ----------
    def _build_process_noise(self, params: ProfileParameters) -> np.ndarray:
        q = params.process_noise
        qv = q * self.config.velocity_noise_factor
        return np.diag([q, q, qv, qv])

    def set_profile(self, params: ProfileParameters) -> None:
        """Меняет базовые шумы Q/R без сброса состояния."""
        self._params = params
        self._process_noise = self._build_process_noise(params)
        self.logger.debug(f"Шум процесса обновлён: q={params.process_noise}")

    def measurement_noise(self, accuracy_m: float) -> np.ndarray:
        """R = diag(accuracy/10); при неположительной точности берётся базовый шум профиля."""
        if accuracy_m > 0:
            r = accuracy_m / self.config.measurement_noise_divisor
        else:
            r = self._params.measurement_noise_base
        return np.diag([r, r])

    # ---------- Жизненный цикл ----------
    def initialize(self, sample: RawPositionSample) -> None:
        """Устанавливает состояние в точку отсчёта с нулевой скоростью."""
        self._state = np.array([sample.latitude, sample.longitude, 0.0, 0.0])
        self._covariance = identity(4) * self.config.initial_covariance
        self._last_timestamp_ms = sample.timestamp_ms
        self.logger.info(
            f"Фильтр инициализирован: ({sample.latitude:.6f}, {sample.longitude:.6f})"
        )

    def reset(self) -> None:
        self._state = None
        self._covariance = identity(4) * self.config.initial_covariance
        self._last_timestamp_ms = None

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    def time_step(self, timestamp_ms: int, default_seconds: float = 1.0) -> float:
        """
        Интервал в секундах от предыдущего обновления; запоминает новую метку.

        Отсчёты с меткой раньше предыдущей дают нулевой интервал.
        """
        if self._last_timestamp_ms is None:
            delta = default_seconds
        else:
            delta = max(0.0, (timestamp_ms - self._last_timestamp_ms) / 1000.0)
        self._last_timestamp_ms = timestamp_ms
        return delta

    def _require_state(self) -> np.ndarray:
        if self._state is None:
            raise RuntimeError("PositionFilter is not initialized")
        return self._state

    # ---------- Шаги фильтра ----------
    def predict(self, delta_seconds: float) -> None:
        """x = F·x, P = F·P·Fᵀ + Q."""
        state = self._require_state()
        transition = identity(4)
        transition[0, 2] = delta_seconds
        transition[1, 3] = delta_seconds

        self._state = mat_mul(transition, state)
        self._covariance = mat_add(
            mat_mul(mat_mul(transition, self._covariance), transpose(transition)),
            self._process_noise,
        )

    def update(self, measurement: Tuple[float, float], accuracy_m: float) -> None:
        """
        Коррекция по измерению координат.

        Args:
            measurement: (широта, долгота)
            accuracy_m: Заявленная точность отсчёта в метрах
        """
        state = self._require_state()
        z = np.array([measurement[0], measurement[1]], dtype=float)
        h_t = transpose(OBSERVATION)

        innovation = mat_sub(z, mat_mul(OBSERVATION, state))
        innovation_cov = mat_add(
            mat_mul(mat_mul(OBSERVATION, self._covariance), h_t),
            self.measurement_noise(accuracy_m),
        )
        s_inv, degenerate = inverse_2x2(innovation_cov, self.config.singular_det_epsilon)
        if degenerate:
            self.degeneracy_count += 1
            self.logger.warning(
                "Вырожденная матрица инноваций, используется единичная "
                f"(всего {self.degeneracy_count})"
            )

        gain = mat_mul(mat_mul(self._covariance, h_t), s_inv)
        self._state = mat_add(state, mat_mul(gain, innovation))
        self._covariance = symmetrize(
            mat_mul(mat_sub(identity(4), mat_mul(gain, OBSERVATION)), self._covariance)
        )

    # ---------- Доступ к состоянию ----------
    def current_estimate(self) -> Tuple[float, float, float, float]:
        """Возвращает (lat, lng, v_lat, v_lng)."""
        state = self._require_state()
        return float(state[0]), float(state[1]), float(state[2]), float(state[3])

    def covariance(self) -> np.ndarray:
        return self._covariance.copy()

    @property
    def parameters(self) -> ProfileParameters:
        return self._params
