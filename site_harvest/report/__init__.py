"""site_harvest.report: выгрузка результатов обхода (JSON на страницу, HTML по истории)."""

from __future__ import annotations

from .html_report import render_html
from .json_report import render_history_json, render_json

__all__ = ["render_json", "render_history_json", "render_html"]
