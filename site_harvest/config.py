# === FILE: site_harvest/config.py ===
"""
Модуль для загрузки и валидации конфигурации краулера SiteHarvest.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

SeedPolicy = Literal["prepend", "append"]


class HarvestConfig(BaseModel):
    """Настройки планировщика обхода, хранилищ и HTTP-загрузчика."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    state_dir: Path = Field(Path(".site_harvest"), description="Каталог для сессий, истории и снимков sitemap.")
    export_dir: Optional[Path] = Field(None, description="Куда выгружать JSON каждой страницы (None: не выгружать).")

    batch_size: int = Field(10, ge=1, description="Число страниц в одном окне до паузы.")
    batch_pause: float = Field(15 * 60.0, ge=0, description="Длительность паузы между окнами (секунд).")
    request_delay: float = Field(2.0, ge=0, description="Задержка после успешной страницы (секунд).")
    error_delay: float = Field(5.0, ge=0, description="Задержка после ошибки загрузки (секунд).")

    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    user_agent: str = Field("SiteHarvestBot/1.0", min_length=1, description="Заголовок User-Agent.")

    redact_terms: List[str] = Field(
        default_factory=lambda: ["gohighlevel", "highlevel"],
        description="Термины, заменяемые в тексте без учёта регистра.",
    )
    redact_replacement: str = Field("mightytools", description="Текст замены.")

    seed_policy: SeedPolicy = Field("prepend", description="Куда ставить новые/изменённые URL из sitemap.")
    sitemap_source: Optional[str] = Field(None, description="Путь или URL sitemap.xml по умолчанию.")

    @field_validator("redact_terms")
    @classmethod
    def _drop_blank_terms(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> HarvestConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект HarvestConfig.
    Без явного пути берёт configs/default.yaml, а при его отсутствии берёт значения по умолчанию.
    Явно указанный, но отсутствующий файл даёт FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return HarvestConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return HarvestConfig(**data)


__all__ = ["HarvestConfig", "SeedPolicy", "load_config"]
