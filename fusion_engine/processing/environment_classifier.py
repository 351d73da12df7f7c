# fusion_engine/processing/environment_classifier.py
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from ..configs.schema import Environment
from ..handlers.models import EnvironmentProfile, ProfileParameters
from ..services.logger_service import LoggerService

TransitionListener = Callable[[EnvironmentProfile, EnvironmentProfile, ProfileParameters], None]

# Качественная оценка сигнала по точности, м
QUALITY_GRADES = (
    (10.0, "excellent"),
    (20.0, "good"),
    (50.0, "fair"),
)


class EnvironmentClassifier:
    """
    Классификатор окружения по заявленной точности отсчёта.

    Каждый отсчёт классифицируется независимо (≤10 м RURAL, ≤30 м
    SUBURBAN, иначе URBAN). При `debounce_samples` > 1 смена профиля
    происходит только после N одинаковых классификаций подряд.
    """

    def __init__(self, config: Environment):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self.config = config
        self._profiles: Dict[EnvironmentProfile, ProfileParameters] = {
            profile: ProfileParameters(**config.profiles[profile.value].model_dump())
            for profile in EnvironmentProfile
        }
        self._current = EnvironmentProfile(config.initial_profile)
        self._candidate: Optional[EnvironmentProfile] = None
        self._candidate_count = 0
        self._recent: Deque[float] = deque(maxlen=config.accuracy_window)
        self._listeners: List[TransitionListener] = []
        self.transition_count = 0

    def band_for(self, accuracy_m: float) -> EnvironmentProfile:
        """Профиль для одной точности без учёта текущего состояния."""
        if accuracy_m <= self.config.rural_max_accuracy_m:
            return EnvironmentProfile.RURAL
        if accuracy_m <= self.config.suburban_max_accuracy_m:
            return EnvironmentProfile.SUBURBAN
        return EnvironmentProfile.URBAN

    def classify(self, accuracy_m: float) -> EnvironmentProfile:
        """
        Классифицирует отсчёт и при смене профиля оповещает слушателей.

        Args:
            accuracy_m: Точность последнего отсчёта в метрах

        Returns:
            Активный профиль после классификации
        """
        self._recent.append(accuracy_m)
        band = self.band_for(accuracy_m)

        if band == self._current:
            self._candidate = None
            self._candidate_count = 0
            return self._current

        if band == self._candidate:
            self._candidate_count += 1
        else:
            self._candidate = band
            self._candidate_count = 1

        if self._candidate_count >= self.config.debounce_samples:
            self._switch(band)
        return self._current

    def _switch(self, new: EnvironmentProfile) -> None:
        old = self._current
        self._current = new
        self._candidate = None
        self._candidate_count = 0
        self.transition_count += 1
        self.logger.info(f"Смена окружения: {old.value} -> {new.value}")

        params = self._profiles[new]
        for listener in list(self._listeners):
            try:
                listener(old, new, params)
            except Exception as e:
                self.logger.error(f"Ошибка в обработчике смены окружения: {e}", exc_info=True)

    def on_transition(self, listener: TransitionListener) -> Callable[[], None]:
        """Регистрирует обработчик смены профиля; возвращает функцию отписки."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    # ---------- Доступ ----------
    @property
    def current(self) -> EnvironmentProfile:
        return self._current

    def parameters(self, profile: Optional[EnvironmentProfile] = None) -> ProfileParameters:
        return self._profiles[profile or self._current]

    @property
    def recent_accuracies(self) -> List[float]:
        return list(self._recent)

    @property
    def average_accuracy(self) -> Optional[float]:
        if not self._recent:
            return None
        return sum(self._recent) / len(self._recent)

    @staticmethod
    def signal_strength(accuracy_m: float) -> float:
        return max(0.0, 100.0 - accuracy_m)

    @staticmethod
    def quality_grade(accuracy_m: float) -> str:
        for limit, grade in QUALITY_GRADES:
            if accuracy_m <= limit:
                return grade
        return "poor"

    def reset(self) -> None:
        """Возвращает начальный профиль без оповещения слушателей."""
        self._current = EnvironmentProfile(self.config.initial_profile)
        self._candidate = None
        self._candidate_count = 0
        self._recent.clear()
