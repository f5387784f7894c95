# File: site_harvest/utils.py
"""site_harvest.utils: Утилитарные функции для списков URL и имён файлов выгрузки."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Collection, List, Sequence

from site_harvest.logger import logger

__all__: Sequence[str] = (
    "remove_duplicates",
    "safe_filename",
    "utc_now_iso",
)

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка URL, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique


def safe_filename(url: str) -> str:
    """Заменяет всё, кроме латиницы и цифр, на подчёркивание."""
    return _UNSAFE_RE.sub("_", url)


def utc_now_iso() -> str:
    """Текущее время UTC в ISO 8601 с миллисекундами и суффиксом Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
