# fusion_engine/handlers/models.py
"""
Неизменяемые структуры данных, которыми обмениваются компоненты движка.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class ValidationResult(Enum):
    """Результаты валидации отсчётов."""
    VALID = "valid"
    NON_FINITE = "non_finite"
    LATITUDE_OUT_OF_RANGE = "latitude_out_of_range"
    LONGITUDE_OUT_OF_RANGE = "longitude_out_of_range"
    INVALID_ACCURACY = "invalid_accuracy"
    INVALID_TIMESTAMP = "invalid_timestamp"


class PositionSource(Enum):
    """Источник выданной позиции."""
    GPS = "gps"
    INERTIAL = "inertial"
    CARRIED = "carried"


class EnvironmentProfile(Enum):
    """Классифицированное окружение приёма сигнала."""
    URBAN = "urban"
    SUBURBAN = "suburban"
    RURAL = "rural"


@dataclass(frozen=True)
class ProfileParameters:
    """Параметры фильтра и порогов для одного окружения."""
    process_noise: float
    measurement_noise_base: float
    outlier_threshold_m: float
    min_acceptable_accuracy_m: float


@dataclass(frozen=True)
class RawPositionSample:
    """Сырой отсчёт от провайдера местоположения."""
    latitude: float
    longitude: float
    accuracy_m: float
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MotionSample:
    """Линейное ускорение с учётом гравитации, м/с²."""
    ax: float
    ay: float
    az: float
    timestamp_ms: int


@dataclass(frozen=True)
class OrientationSample:
    """Ориентация устройства, градусы."""
    heading: float
    pitch: float
    roll: float
    timestamp_ms: int


@dataclass(frozen=True)
class StepEvent:
    step_index: int
    magnitude: float
    timestamp_ms: int


@dataclass(frozen=True)
class FusedPosition:
    """Итоговая позиция, отдаваемая наружу."""
    lat: float
    lng: float
    accuracy_estimate: float
    confidence: float
    source: PositionSource
    timestamp_ms: int
    estimated: bool = False
    velocity_lat: float = 0.0
    velocity_lng: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Преобразует в словарь для JSON сериализации."""
        result = asdict(self)
        result["source"] = self.source.value
        return result


@dataclass(frozen=True)
class QualityMetrics:
    accuracy_score: float
    consistency_score: float
    reliability_score: float
    estimator_confidence: float = 0.0
    # Среднее reliability_score по короткому скользящему окну
    rolling_reliability: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PathPoint:
    """Точка трека в кольцевом буфере."""
    lat: float
    lng: float
    timestamp_ms: int
    id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProviderOptions:
    """Параметры подписки на провайдер местоположения."""
    high_accuracy: bool = True
    timeout_ms: int = 10000
    max_sample_age_ms: int = 0


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    """Снимок состояния движка для операционных инструментов."""
    state: str
    environment: str
    tracking_mode: str
    quality: Optional[QualityMetrics]
    performance_tier: str
    update_interval_ms: int
    buffer_size: int
    buffer_capacity: int
    last_position: Optional[FusedPosition]
    counters: Dict[str, int]
    inertial: Dict[str, Any]
    path_tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "environment": self.environment,
            "tracking_mode": self.tracking_mode,
            "quality": self.quality.to_dict() if self.quality else None,
            "performance_tier": self.performance_tier,
            "update_interval_ms": self.update_interval_ms,
            "buffer_size": self.buffer_size,
            "buffer_capacity": self.buffer_capacity,
            "last_position": self.last_position.to_dict() if self.last_position else None,
            "counters": dict(self.counters),
            "inertial": dict(self.inertial),
            "path_tier": self.path_tier,
        }
