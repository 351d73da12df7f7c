import math
from typing import Callable, List, Tuple

import pytest

from fusion_engine.configs.schema import RootConfig
from fusion_engine.core.fusion_coordinator import FusionCoordinator
from fusion_engine.handlers.models import RawPositionSample
from fusion_engine.handlers.providers import ReplayMotionProvider, ReplayPositionProvider


class ManualClock:
    """Часы движка, управляемые из теста."""

    def __init__(self, now_ms: int = 0):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def set(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def advance(self, delta_ms: int) -> None:
        self.now_ms += delta_ms


class ManualTimerManager:
    """Таймеры, которые срабатывают только по команде теста."""

    def __init__(self):
        self.pending: List[Tuple[float, Callable[[], None]]] = []
        self.stopped = 0

    def start_timer(self, interval: float, callback: Callable[[], None]) -> None:
        self.pending.append((interval, callback))

    def stop_all_timers(self) -> None:
        self.stopped += 1
        self.pending.clear()

    def fire_next(self) -> None:
        _, callback = self.pending.pop(0)
        callback()


def sample(lat: float, lng: float, accuracy: float, timestamp_ms: int) -> RawPositionSample:
    return RawPositionSample(latitude=lat, longitude=lng, accuracy_m=accuracy, timestamp_ms=timestamp_ms)


def meters_north(lat: float, meters: float) -> float:
    """Широта точки, смещённой строго на север на `meters` по дуге большого круга geopy."""
    from geopy.distance import EARTH_RADIUS
    return lat + math.degrees(meters / (EARTH_RADIUS * 1000.0))


@pytest.fixture
def config() -> RootConfig:
    return RootConfig()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def timers() -> ManualTimerManager:
    return ManualTimerManager()


@pytest.fixture
def position_provider() -> ReplayPositionProvider:
    return ReplayPositionProvider()


@pytest.fixture
def motion_provider() -> ReplayMotionProvider:
    return ReplayMotionProvider()


@pytest.fixture
def coordinator(config, position_provider, motion_provider, clock, timers) -> FusionCoordinator:
    return FusionCoordinator(config, position_provider, motion_provider,
                             clock=clock, timer_manager=timers)


@pytest.fixture
def feed(position_provider, clock):
    """Подаёт отсчёт, выставляя часы движка на его метку времени."""

    def _feed(raw: RawPositionSample) -> None:
        clock.set(raw.timestamp_ms)
        position_provider.push(raw)

    return _feed


@pytest.fixture
def emitted(coordinator):
    positions = []
    coordinator.add_position_listener(positions.append)
    return positions
