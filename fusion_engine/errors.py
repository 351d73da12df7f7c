# fusion_engine/errors.py
"""
Иерархия ошибок движка слияния местоположения.

Фатальными для сессии являются только PermissionDenied и ProviderUnavailable,
остальные ошибки поглощаются внутри: они учитываются в счётчиках
диагностики и публикуются в канал ошибок координатора как нефатальные.
"""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Виды ошибок движка."""
    PERMISSION_DENIED = "permission_denied"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    ACQUISITION_TIMEOUT = "acquisition_timeout"
    INVALID_SAMPLE = "invalid_sample"
    OUTLIER_REJECTED = "outlier_rejected"
    NUMERIC_DEGENERACY = "numeric_degeneracy"
    SENSOR_UNAVAILABLE = "sensor_unavailable"
    PROVIDER_ERROR = "provider_error"


class FusionEngineError(Exception):
    """Базовая ошибка движка."""

    kind: Optional[ErrorKind] = None
    fatal: bool = False

    def __init__(self, message: str = "", code: Optional[int] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
            "code": self.code,
            "fatal": self.fatal,
        }


class PermissionDenied(FusionEngineError):
    """Платформа отказала в подписке на местоположение."""
    kind = ErrorKind.PERMISSION_DENIED
    fatal = True


class ProviderUnavailable(FusionEngineError):
    """На устройстве нет источника местоположения."""
    kind = ErrorKind.PROVIDER_UNAVAILABLE
    fatal = True


class AcquisitionTimeout(FusionEngineError):
    """Таймаут получения одного отсчёта."""
    kind = ErrorKind.ACQUISITION_TIMEOUT


class InvalidSample(FusionEngineError):
    """Отсчёт не прошёл проверку диапазонов или содержит NaN/Inf."""
    kind = ErrorKind.INVALID_SAMPLE


class OutlierRejected(FusionEngineError):
    """Отсчёт отброшен как выброс."""
    kind = ErrorKind.OUTLIER_REJECTED


class NumericDegeneracy(FusionEngineError):
    """Вырожденная матрица при обращении ковариации."""
    kind = ErrorKind.NUMERIC_DEGENERACY


class SensorUnavailable(FusionEngineError):
    """Инерциальные датчики недоступны."""
    kind = ErrorKind.SENSOR_UNAVAILABLE


class ProviderError(FusionEngineError):
    """Ошибка провайдера с неизвестным кодом; сессия продолжается."""
    kind = ErrorKind.PROVIDER_ERROR


# Коды ошибок платформенного провайдера местоположения
PROVIDER_ERROR_CODES = {
    1: PermissionDenied,
    2: ProviderUnavailable,
    3: AcquisitionTimeout,
}


def error_from_code(code: int, message: str = "") -> FusionEngineError:
    """
    Преобразует числовой код ошибки провайдера в исключение движка.

    Args:
        code: Код ошибки (1 - нет разрешения, 2 - нет позиции, 3 - таймаут,
            остальные - ProviderError)
        message: Текст ошибки от провайдера

    Returns:
        Экземпляр соответствующего исключения
    """
    error_cls = PROVIDER_ERROR_CODES.get(code, ProviderError)
    return error_cls(message, code=code)
