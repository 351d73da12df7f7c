# fusion_engine/configs/manager.py
import json
import os
from typing import Any, Dict, Optional

from ..services.logger_service import LoggerService


class ConfigManager:
    """
    Чтение JSON‑файла конфигурации движка.

    Файл должен содержать объект верхнего уровня с секциями; отсутствующие
    секции заполняются значениями по умолчанию уже при валидации в
    `ConfigProvider`.
    """

    DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "default_config.json")

    def __init__(self, config_path: Optional[str] = None):
        self.logger = LoggerService.get_logger(self.__class__.__name__)
        self._config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._raw: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """
        Raises:
            FileNotFoundError: Файла нет
            json.JSONDecodeError: Файл не является JSON
            ValueError: Верхний уровень JSON не объект
        """
        if not os.path.isfile(self._config_path):
            self.logger.error(f"Файл конфигурации не найден: {self._config_path}")
            raise FileNotFoundError(self._config_path)

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            self.logger.error(f"Ошибка разбора JSON в {self._config_path}: {exc}")
            raise

        if not isinstance(data, dict):
            self.logger.error(f"Ожидался JSON‑объект в {self._config_path}, получен {type(data).__name__}")
            raise ValueError(f"Config root must be an object: {self._config_path}")

        self._raw = data
        self.logger.info(f"Конфигурация загружена: {self._config_path} (секций: {len(data)})")

    def reload(self) -> None:
        self._load()

    @property
    def path(self) -> str:
        return self._config_path

    @property
    def raw(self) -> Dict[str, Any]:
        return self._raw
