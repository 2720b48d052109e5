import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from image_cache.config import Settings

DEFAULT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(settings: Optional[Settings] = None):
    """
    Настройка логгера на основе pydantic-модели Settings.logging.
    Без настроек (тесты, интерактивный запуск) - только консоль.
    """
    root = logging.getLogger()

    if settings is None or settings.logging is None:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root.addHandler(ch)
        return

    log_cfg = settings.logging

    # уровни
    console_level = logging.getLevelName(log_cfg.console.level.upper())
    file_level = logging.getLevelName(log_cfg.file.level.upper())

    root.setLevel(min(console_level, file_level))

    # консоль
    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(logging.Formatter(log_cfg.console.fmt, datefmt=log_cfg.date_format))
    root.addHandler(ch)

    # файл с ротацией
    Path(log_cfg.file.path).parent.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(
        filename=log_cfg.file.path,
        maxBytes=log_cfg.file.max_bytes,
        backupCount=log_cfg.file.backup_count,
        encoding="utf-8"
    )
    fh.setLevel(file_level)
    fh.setFormatter(logging.Formatter(log_cfg.file.fmt, datefmt=log_cfg.date_format))
    root.addHandler(fh)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
