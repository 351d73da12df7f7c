# fusion_engine/configs/__init__.py
import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .manager import ConfigManager
from .schema import RootConfig
from ..services.logger_service import LoggerService


class ConfigProvider:
    """
    Объект конфигурации движка, который:
    * читает JSON один раз при создании;
    * валидирует его через pydantic;
    * предоставляет удобный API (get по dotted‑path, доступ к секциям);
    * умеет перезагружать конфиг в рантайме;
    * потокобезопасен.

    Каждая сессия отслеживания создаёт свой экземпляр, глобального
    объекта нет.
    """

    def __init__(self, config_path: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        self._logger = LoggerService.get_logger(self.__class__.__name__)
        self._config_path = config_path
        self._overrides = overrides or {}
        self._manager = ConfigManager(config_path=config_path)
        self._reload_lock = threading.RLock()
        self._validated: Optional[RootConfig] = None
        self._load_and_validate()

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConfigProvider":
        """Конфиг по умолчанию, поверх которого наложены секции из `raw`."""
        return cls(config_path=None, overrides=raw)

    # ---------- Приватные методы ----------
    def _load_and_validate(self) -> None:
        """Читает `raw`‑словарь, накладывает overrides и валидирует."""
        with self._reload_lock:
            raw = _deep_merge(self._manager.raw, self._overrides)
            try:
                self._validated = RootConfig(**raw)
                self._logger.debug("Configuration validated successfully.")
            except ValidationError as exc:
                self._logger.error(f"Configuration validation failed: {exc}")
                raise

    # ---------- Публичный API ----------
    def reload(self, config_path: Optional[str] = None) -> None:
        """
        Перезагружает конфигурацию из (возможного) нового файла.
        """
        with self._reload_lock:
            if config_path:
                self._config_path = config_path
                self._manager = ConfigManager(config_path=config_path)
            else:
                self._manager.reload()
            self._load_and_validate()

    @property
    def raw(self) -> dict:
        """Сырой словарь без валидации (редко нужен)."""
        return self._manager.raw

    @property
    def data(self) -> RootConfig:
        """Валидированный объект pydantic. Доступ через атрибуты."""
        return self._validated  # type: ignore[return-value]

    def get(self, dotted_path: str, default: Any = None) -> Any:
        """
        Пример: config.get('fusion.max_consecutive_outliers')
        """
        parts = dotted_path.split(".")
        cur: Any = self._validated
        for part in parts:
            if isinstance(cur, dict):
                cur = cur.get(part, default)
            else:
                cur = getattr(cur, part, default)
            if cur is default:
                break
        return cur

    def __getitem__(self, key: str) -> Any:
        return getattr(self._validated, key)

    def __repr__(self) -> str:
        return f"<ConfigProvider path={self._manager.path}>"


def _deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Рекурсивно накладывает `patch` на копию `base`."""
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


__all__ = ["ConfigProvider", "ConfigManager", "RootConfig"]
