# site_harvest/report/json_report.py

"""
Выгрузка JSON для проекта SiteHarvest.

Одна страница пишется в файл ``crawl-<url>.json``, вся история пишется одним списком.
"""
import json
from pathlib import Path
from typing import Iterable

from site_harvest.crawler.models import PageResult
from site_harvest.utils import safe_filename


def render_json(result: PageResult, export_dir: Path | str) -> Path:
    """
    Сохраняет один результат обхода в каталог export_dir.

    :param result: объект PageResult
    :param export_dir: каталог для файлов выгрузки
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_harvest.report.json_report import render_json
    path = render_json(result, 'exports')
    print(f"Saved to: {path}")
    ```
    """
    output = Path(export_dir) / f"crawl-{safe_filename(result.url)}.json"
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)

    return output


def render_history_json(results: Iterable[PageResult], output_path: Path | str) -> Path:
    """Сохраняет весь журнал истории списком в один JSON-файл."""
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump([r.to_dict() for r in results], f, ensure_ascii=False, indent=2)

    return output
