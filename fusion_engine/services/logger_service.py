# fusion_engine/services/logger_service.py
import logging
import logging.handlers
import os
import sys
from typing import Optional, ClassVar


class LoggerService:
    """
    Централизованный сервис логирования движка.
    Конфигурирует корневой логгер один раз и выдаёт дочерние
    логгеры по имени класса или модуля.
    """

    # ---------- Параметры конфигурации (по умолчанию) ----------
    _initialized: ClassVar[bool] = False
    _log_level: ClassVar[int] = logging.INFO
    _log_format: ClassVar[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    _log_directory: ClassVar[str] = "logs_dir"
    _log_file_name: ClassVar[str] = "fusion_engine.log"
    _max_file_size_bytes: ClassVar[int] = 10 * 1024 * 1024   # 10 МБ
    _backup_count: ClassVar[int] = 5

    # ---------- Публичный API ----------
    @classmethod
    def configure(
        cls,
        *,
        log_level: int = logging.INFO,
        log_directory: str = "logs_dir",
        log_format: Optional[str] = None,
        max_file_size_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        file_output: bool = False,
        console_output: bool = True,
    ) -> None:
        """
        Вызывается один раз при старте приложения.

        Args:
            log_level: Числовой уровень логирования
            log_directory: Каталог для файла журнала
            log_format: Формат записей
            max_file_size_bytes: Размер файла до ротации
            backup_count: Количество архивных файлов
            file_output: Писать ли журнал в файл
            console_output: Дублировать ли журнал в stdout
        """
        if cls._initialized:
            cls.get_logger(__name__).warning(
                "LoggerService уже инициализирован; повторная конфигурация игнорируется."
            )
            return

        cls._log_level = log_level
        cls._log_directory = log_directory
        if log_format:
            cls._log_format = log_format
        cls._max_file_size_bytes = max_file_size_bytes
        cls._backup_count = backup_count

        # ---------- Настройка корневого логгера ----------
        root_logger = logging.getLogger()
        root_logger.setLevel(cls._log_level)

        # Чтобы не добавить обработчики дважды
        if not root_logger.handlers:
            formatter = logging.Formatter(cls._log_format)

            if file_output:
                os.makedirs(cls._log_directory, mode=0o755, exist_ok=True)
                file_path = os.path.join(cls._log_directory, cls._log_file_name)
                file_handler = logging.handlers.RotatingFileHandler(
                    file_path,
                    maxBytes=cls._max_file_size_bytes,
                    backupCount=cls._backup_count,
                    encoding="utf-8",
                )
                file_handler.setLevel(cls._log_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

            if console_output:
                console_handler = logging.StreamHandler(sys.stdout)
                console_handler.setLevel(cls._log_level)
                console_handler.setFormatter(formatter)
                root_logger.addHandler(console_handler)

        cls._initialized = True

        cls.get_logger(__name__).debug(
            f"Конфигурация журнала: level={log_level}, dir={log_directory}, file={file_output}"
        )

    @classmethod
    def configure_from(cls, section) -> None:
        """Конфигурирует сервис из секции `logging` валидированного конфига."""
        cls.configure(
            log_level=section.get_log_level(),
            log_directory=section.directory,
            log_format=section.format,
            max_file_size_bytes=section.max_file_size_mb * 1024 * 1024,
            backup_count=section.backup_count,
            file_output=section.file_output,
            console_output=section.console_output,
        )

    @classmethod
    def is_configured(cls) -> bool:
        return cls._initialized

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Возвращает (или создаёт) логгер с указанным именем.
        Если сервис ещё не сконфигурирован, вызывается configure()
        с параметрами по умолчанию.
        """
        if not cls._initialized:
            cls.configure()

        # Дочерний логгер наследует обработчики корневого
        return logging.getLogger(name)
