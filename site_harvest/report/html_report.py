"""site_harvest.report.html_report: Генерация HTML-отчёта по истории обхода с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_harvest.crawler.models import PageResult

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_html(
    results: Iterable[PageResult],
    template_dir: Union[Path, str, None],
    output_path: Union[Path, str],
) -> Path:
    """Рендерит HTML-отчёт по истории и сохраняет его по указанному пути.

    Args:
        results: результаты из HistoryStore, в порядке добавления.
        template_dir: директория с Jinja2-шаблонами (None: встроенные шаблоны).
        output_path: путь к итоговому HTML-файлу.

    Returns:
        Path до сохранённого HTML-файла.

    Пример:
    ```python
    from site_harvest.report.html_report import render_html
    html_path = render_html(history.results(), None, 'reports/history.html')
    ```
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("history.html.j2")

    # newest first, as in the history log view
    pages = list(results)[::-1]
    context: dict[str, Any] = {
        "pages": pages,
        "total": len(pages),
    }

    html_content = template.render(**context)
    output_path.write_text(html_content, encoding="utf-8")

    return output_path
