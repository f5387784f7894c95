# File: site_harvest/logger.py
"""Логирование SiteHarvest.

Все модули пишут в дерево логгеров ``SiteHarvest.*``::

    from site_harvest.logger import get_logger
    log = get_logger("scheduler")      # -> "SiteHarvest.scheduler"

Обработчики висят только на корневом ``SiteHarvest``; CLI перенастраивает
их через :func:`init_logging`. Вывод идёт в stderr: stdout занят
результатами команд (JSON, строки статуса).
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Optional, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteHarvest"

LOG_FILE_MAX_BYTES: Final[int] = 5 * 1024 * 1024
LOG_FILE_BACKUPS: Final[int] = 3


def _handlers(log_file: Union[str, Path, None]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                str(log_file),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    return handlers


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Заменяет обработчики корневого логгера проекта и выставляет уровень.

    Старые обработчики при этом закрываются.
    """
    root = logging.getLogger(LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)
    for handler in _handlers(log_file):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(level)
    root.propagate = False
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Дочерний логгер ``SiteHarvest.<name>`` (или корневой без имени)."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


logger: logging.Logger = init_logging()

__all__ = ["logger", "get_logger", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
