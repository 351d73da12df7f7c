# fusion_engine/configs/schema.py
from __future__ import annotations
from typing import Dict
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Logging(BaseModel):
    level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    directory: str = "logs_dir"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_file_size_mb: int = Field(10, ge=1, le=100)
    backup_count: int = Field(5, ge=1, le=20)
    console_output: bool = True
    file_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v):
        """Проверяем, что уровень логирования корректный"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return str(v).upper()

    def get_log_level(self) -> int:
        """Возвращает числовой уровень логирования для logging модуля"""
        return getattr(logging, self.level)


class Filter(BaseModel):
    initial_covariance: float = Field(1000.0, gt=0)
    velocity_noise_factor: float = Field(10.0, gt=0)
    singular_det_epsilon: float = Field(1e-10, gt=0)
    measurement_noise_divisor: float = Field(10.0, gt=0)


class Profile(BaseModel):
    process_noise: float = Field(..., gt=0)
    measurement_noise_base: float = Field(..., gt=0)
    outlier_threshold_m: float = Field(..., gt=0)
    min_acceptable_accuracy_m: float = Field(..., gt=0)


def _default_profiles() -> Dict[str, Profile]:
    return {
        "urban": Profile(process_noise=0.005, measurement_noise_base=2.0,
                         outlier_threshold_m=50, min_acceptable_accuracy_m=30),
        "suburban": Profile(process_noise=0.01, measurement_noise_base=1.5,
                            outlier_threshold_m=75, min_acceptable_accuracy_m=40),
        "rural": Profile(process_noise=0.02, measurement_noise_base=1.0,
                         outlier_threshold_m=100, min_acceptable_accuracy_m=50),
    }


class Environment(BaseModel):
    rural_max_accuracy_m: float = Field(10.0, gt=0)
    suburban_max_accuracy_m: float = Field(30.0, gt=0)
    initial_profile: str = Field("suburban", pattern="^(urban|suburban|rural)$")
    # 1 = без гистерезиса, каждый отсчёт классифицируется независимо
    debounce_samples: int = Field(1, ge=1, le=20)
    accuracy_window: int = Field(10, ge=1, le=1000)
    profiles: Dict[str, Profile] = Field(default_factory=_default_profiles)

    @model_validator(mode="after")
    def check_bands(self):
        if self.rural_max_accuracy_m > self.suburban_max_accuracy_m:
            raise ValueError("rural_max_accuracy_m must not exceed suburban_max_accuracy_m")
        missing = {"urban", "suburban", "rural"} - set(self.profiles)
        if missing:
            raise ValueError(f"Missing environment profiles: {sorted(missing)}")
        return self


class Inertial(BaseModel):
    low_pass_alpha: float = Field(0.8, ge=0, le=1)
    step_threshold: float = Field(12.0, gt=0)
    min_step_interval_ms: int = Field(300, ge=0)
    max_gps_gap_ms: int = Field(10000, ge=0)
    average_step_length_m: float = Field(0.75, gt=0)
    min_step_length_m: float = Field(0.4, gt=0)
    max_step_length_m: float = Field(1.2, gt=0)
    calibration_weight: float = Field(0.2, ge=0, le=1)
    calibration_min_steps: int = Field(10, ge=1)
    calibration_max_accuracy_m: float = Field(20.0, gt=0)
    inertial_confidence: float = Field(0.3, ge=0, le=1)
    drift_ratio: float = Field(0.05, ge=0)
    velocity_decay: float = Field(0.95, ge=0, le=1)
    motion_history: int = Field(50, ge=1)
    orientation_history: int = Field(50, ge=1)
    step_history: int = Field(100, ge=1)

    @model_validator(mode="after")
    def check_step_bounds(self):
        if self.min_step_length_m > self.max_step_length_m:
            raise ValueError("min_step_length_m must not exceed max_step_length_m")
        return self


class Fusion(BaseModel):
    max_consecutive_outliers: int = Field(5, ge=1)
    confidence_threshold: float = Field(0.7, ge=0, le=1)
    max_sensor_fallback_ms: int = Field(30000, ge=0)
    confidence_decay_ms: float = Field(60000.0, gt=0)
    max_speed_ms: float = Field(20.0, gt=0)
    carried_confidence: float = Field(0.5, ge=0, le=1)
    accuracy_estimate_factor: float = Field(0.7, gt=0)
    default_delta_seconds: float = Field(1.0, gt=0)
    update_interval_ms: int = Field(1000, ge=1)
    min_update_interval_ms: int = Field(500, ge=1)
    max_update_interval_ms: int = Field(3000, ge=1)
    history_max_age_ms: int = Field(3600000, ge=0)
    history_size: int = Field(1000, ge=1)
    quality_window: int = Field(10, ge=1)
    slow_processing_ms: float = Field(50.0, gt=0)
    gps_only: bool = False

    @model_validator(mode="after")
    def check_interval_bounds(self):
        if self.min_update_interval_ms > self.max_update_interval_ms:
            raise ValueError("min_update_interval_ms must not exceed max_update_interval_ms")
        return self


class Tier(BaseModel):
    batch_size: int = Field(..., ge=1)
    update_interval_ms: int = Field(..., ge=1)
    simplification_tolerance: float = Field(..., ge=0)


def _default_tiers() -> Dict[str, Tier]:
    return {
        "low": Tier(batch_size=10, update_interval_ms=2000, simplification_tolerance=0.0001),
        "normal": Tier(batch_size=5, update_interval_ms=1000, simplification_tolerance=0.00005),
        "high": Tier(batch_size=3, update_interval_ms=500, simplification_tolerance=0.00001),
    }


class Performance(BaseModel):
    slow_threshold_ms: float = Field(100.0, gt=0)
    fast_threshold_ms: float = Field(30.0, gt=0)
    window: int = Field(10, ge=1)
    tiers: Dict[str, Tier] = Field(default_factory=_default_tiers)

    @model_validator(mode="after")
    def check_tiers(self):
        missing = {"low", "normal", "high"} - set(self.tiers)
        if missing:
            raise ValueError(f"Missing performance tiers: {sorted(missing)}")
        if self.fast_threshold_ms > self.slow_threshold_ms:
            raise ValueError("fast_threshold_ms must not exceed slow_threshold_ms")
        return self


class Path(BaseModel):
    capacity: int = Field(10000, ge=2)
    bytes_per_point: int = Field(100, ge=1)


class ProviderMode(BaseModel):
    high_accuracy: bool = True
    timeout_ms: int = Field(10000, ge=0)
    max_sample_age_ms: int = Field(0, ge=0)


def _default_modes() -> Dict[str, ProviderMode]:
    return {
        "running": ProviderMode(high_accuracy=True, timeout_ms=10000, max_sample_age_ms=0),
        "background": ProviderMode(high_accuracy=True, timeout_ms=15000, max_sample_age_ms=0),
        "quick": ProviderMode(high_accuracy=True, timeout_ms=5000, max_sample_age_ms=0),
    }


class Provider(BaseModel):
    default_mode: str = "running"
    modes: Dict[str, ProviderMode] = Field(default_factory=_default_modes)
    # Таймауты по окружению (мс), из расчёта на медленный фикс в городе
    environment_timeouts_ms: Dict[str, int] = Field(
        default_factory=lambda: {"urban": 15000, "suburban": 10000, "rural": 8000}
    )

    @model_validator(mode="after")
    def check_default_mode(self):
        if self.default_mode not in self.modes:
            raise ValueError(f"Unknown provider mode: {self.default_mode}")
        return self


class RootConfig(BaseModel):
    logging: Logging = Logging()
    filter: Filter = Filter()
    environment: Environment = Environment()
    inertial: Inertial = Inertial()
    fusion: Fusion = Fusion()
    performance: Performance = Performance()
    path: Path = Path()
    provider: Provider = Provider()

    # Позволяем «добавлять» произвольные секции, если они нужны в будущем
    model_config = ConfigDict(extra="allow")
