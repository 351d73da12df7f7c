# fusion_engine/handlers/position_handler.py
import math
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..configs.schema import Fusion
from ..services.logger_service import LoggerService
from ..utils.geometry import haversine_m
from .models import ProfileParameters, RawPositionSample, ValidationResult


class GateDecision(Enum):
    """Решение по отсчёту, прошедшему валидацию."""
    ACCEPT = "accept"
    LOW_ACCURACY = "low_accuracy"
    OUTLIER = "outlier"
    FORCED_RESET = "forced_reset"


class SampleValidator:
    """Проверка сырых отсчётов на диапазоны и конечность значений."""

    def validate(self, sample: RawPositionSample) -> Tuple[ValidationResult, str]:
        """
        Базовая валидация отсчёта.

        Returns:
            Tuple[ValidationResult, str]: Результат валидации и описание причины
        """
        values = (sample.latitude, sample.longitude, sample.accuracy_m, sample.timestamp_ms)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            return ValidationResult.NON_FINITE, "Отсчёт содержит NaN, Inf или нечисловые значения"

        if not -90.0 <= sample.latitude <= 90.0:
            return (ValidationResult.LATITUDE_OUT_OF_RANGE,
                    f"Широта вне диапазона [-90, 90]: {sample.latitude}")

        if not -180.0 <= sample.longitude <= 180.0:
            return (ValidationResult.LONGITUDE_OUT_OF_RANGE,
                    f"Долгота вне диапазона [-180, 180]: {sample.longitude}")

        if sample.accuracy_m < 0:
            return ValidationResult.INVALID_ACCURACY, f"Отрицательная точность: {sample.accuracy_m}"

        if sample.timestamp_ms < 0:
            return ValidationResult.INVALID_TIMESTAMP, f"Отрицательная метка времени: {sample.timestamp_ms}"

        return ValidationResult.VALID, "Данные валидны"


class PositionDataHandler:
    """
    Фильтр сырых отсчётов перед фильтром Калмана.

    Отвечает за валидацию, порог по точности и отбраковку выбросов
    со счётчиком подряд идущих выбросов.
    """

    def __init__(self, fusion_config: Fusion, validator: Optional[SampleValidator] = None):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.max_consecutive_outliers = fusion_config.max_consecutive_outliers
        self.validator = validator or SampleValidator()
        self.consecutive_outliers = 0
        self._stats = {
            "total_processed": 0,
            "valid_count": 0,
            "invalid_count": 0,
            "low_accuracy_count": 0,
            "outlier_count": 0,
            "forced_reset_count": 0,
            "validation_errors": {},
        }

    def validate(self, sample: RawPositionSample) -> Tuple[ValidationResult, str]:
        """Валидирует отсчёт и учитывает результат в статистике."""
        self._stats["total_processed"] += 1
        result, reason = self.validator.validate(sample)
        if result != ValidationResult.VALID:
            self._stats["invalid_count"] += 1
            errors = self._stats["validation_errors"]
            errors[result.value] = errors.get(result.value, 0) + 1
            self.logger.warning(f"Отсчёт отброшен ({result.value}): {reason}")
        else:
            self._stats["valid_count"] += 1
        return result, reason

    def evaluate(self, sample: RawPositionSample, params: ProfileParameters,
                 reference: Optional[Tuple[float, float]]) -> Tuple[GateDecision, Optional[float]]:
        """
        Применяет порог точности и проверку на выброс.

        Выбросом считается отсчёт, расстояние которого до опорной точки
        строго больше порога профиля. На `max_consecutive_outliers`-м
        выбросе подряд возвращается FORCED_RESET.

        Args:
            sample: Валидный отсчёт
            params: Параметры активного профиля окружения
            reference: Последняя принятая позиция (lat, lng) или None

        Returns:
            (решение, расстояние до опорной точки в метрах или None)
        """
        if sample.accuracy_m > params.min_acceptable_accuracy_m:
            self._stats["low_accuracy_count"] += 1
            self.logger.warning(
                f"Недостаточная точность: {sample.accuracy_m} м "
                f"(порог {params.min_acceptable_accuracy_m} м)"
            )
            return GateDecision.LOW_ACCURACY, None

        if reference is None:
            self.consecutive_outliers = 0
            return GateDecision.ACCEPT, None

        distance = haversine_m(reference[0], reference[1], sample.latitude, sample.longitude)
        if distance > params.outlier_threshold_m:
            self.consecutive_outliers += 1
            self._stats["outlier_count"] += 1
            if self.consecutive_outliers >= self.max_consecutive_outliers:
                self.logger.warning(
                    f"{self.consecutive_outliers} выбросов подряд, принудительная переинициализация"
                )
                self._stats["forced_reset_count"] += 1
                self.consecutive_outliers = 0
                return GateDecision.FORCED_RESET, distance

            self.logger.warning(
                f"Выброс: {distance:.1f} м > {params.outlier_threshold_m} м "
                f"({self.consecutive_outliers} подряд)"
            )
            return GateDecision.OUTLIER, distance

        self.consecutive_outliers = 0
        return GateDecision.ACCEPT, distance

    def reset(self) -> None:
        self.consecutive_outliers = 0

    def get_processing_stats(self) -> Dict[str, Any]:
        """Возвращает копию статистики обработки."""
        stats = dict(self._stats)
        stats["validation_errors"] = dict(self._stats["validation_errors"])
        stats["consecutive_outliers"] = self.consecutive_outliers
        return stats

    def reset_stats(self) -> None:
        """Сбрасывает статистику."""
        self._stats = {
            "total_processed": 0,
            "valid_count": 0,
            "invalid_count": 0,
            "low_accuracy_count": 0,
            "outlier_count": 0,
            "forced_reset_count": 0,
            "validation_errors": {},
        }
