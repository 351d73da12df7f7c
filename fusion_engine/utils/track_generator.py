# fusion_engine/utils/track_generator.py
"""
Генератор синтетических треков для симуляций и тестов.
"""
import random
from typing import List, Optional

from ..handlers.models import MotionSample, RawPositionSample
from .geometry import normalize_heading, project


def generate_track(
    start_lat: float = 37.5,
    start_lng: float = 127.0,
    duration_seconds: int = 60,
    speed_ms: float = 3.0,
    heading: float = 0.0,
    max_turn_deg: float = 0.0,
    accuracy_m: float = 8.0,
    noise_m: float = 0.0,
    start_timestamp_ms: int = 0,
    failure_probability_per_sec: float = 0.0,
    min_failure_duration: int = 1,
    max_failure_duration: int = 10,
    seed: Optional[int] = None,
) -> List[RawPositionSample]:
    """
    Генерирует по одному отсчёту в секунду вдоль курса.

    Во время сбоев отсчёты не выдаются, как у реального приёмника.

    Args:
        start_lat, start_lng: Начальная точка
        duration_seconds: Длительность трека
        speed_ms: Скорость движения, м/с
        heading: Начальный курс, градусы
        max_turn_deg: Максимальный поворот курса за секунду
        accuracy_m: Заявленная точность отсчётов
        noise_m: Амплитуда случайного смещения отсчёта
        start_timestamp_ms: Метка времени первого отсчёта
        failure_probability_per_sec: Вероятность начала сбоя в секунду
        seed: Зерно генератора для воспроизводимости

    Returns:
        Список отсчётов
    """
    rng = random.Random(seed)
    lat, lng = start_lat, start_lng
    samples: List[RawPositionSample] = []
    failure_until: Optional[int] = None

    for sec in range(duration_seconds):
        timestamp_ms = start_timestamp_ms + sec * 1000

        # === Сбои приёма ===
        if failure_until is not None and timestamp_ms >= failure_until:
            failure_until = None
        if failure_until is None and rng.random() < failure_probability_per_sec:
            duration = rng.randint(min_failure_duration, max_failure_duration)
            failure_until = timestamp_ms + duration * 1000

        # === Движение ===
        if sec > 0:
            if max_turn_deg:
                heading = normalize_heading(heading + rng.uniform(-max_turn_deg, max_turn_deg))
            lat, lng = project(lat, lng, speed_ms, heading)

        if failure_until is not None:
            continue

        sample_lat, sample_lng = lat, lng
        if noise_m:
            sample_lat, sample_lng = project(lat, lng, rng.uniform(0, noise_m), rng.uniform(0, 360))

        samples.append(RawPositionSample(
            latitude=sample_lat,
            longitude=sample_lng,
            accuracy_m=accuracy_m,
            timestamp_ms=timestamp_ms,
        ))

    return samples


def generate_steps(
    start_timestamp_ms: int,
    steps: int,
    step_interval_ms: int = 500,
    magnitude: float = 15.0,
) -> List[MotionSample]:
    """
    По одному отсчёту акселерометра на шаг с постоянным модулем.

    Постоянный модуль проходит через экспоненциальный фильтр без
    изменений, поэтому каждый отсчёт выше порога даёт ровно один шаг,
    если интервал не меньше минимального между шагами.
    """
    return [
        MotionSample(ax=0.0, ay=0.0, az=magnitude, timestamp_ms=start_timestamp_ms + i * step_interval_ms)
        for i in range(steps)
    ]
