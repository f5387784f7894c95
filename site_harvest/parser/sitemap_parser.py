# File: site_harvest/parser/sitemap_parser.py
"""site_harvest.parser.sitemap_parser: Модуль для парсинга sitemap.xml в снимок (url, lastmod)."""

from __future__ import annotations

from typing import List, Union

from lxml import etree

from site_harvest.crawler.models import SitemapEntry


def parse_sitemap(xml_content: Union[str, bytes]) -> List[SitemapEntry]:
    """Разбирает XML sitemap и возвращает записи из тегов <url>.

    Args:
        xml_content: строка или байты с содержимым sitemap.xml.

    Returns:
        Список SitemapEntry в порядке документа; без lastmod значение None.
        Записи без <loc> пропускаются.

    Пример:
    ```python
    from site_harvest.parser.sitemap_parser import parse_sitemap

    with open('sitemap.xml', encoding='utf-8') as f:
        entries = parse_sitemap(f.read())
    print([e.url for e in entries])
    ```
    """
    raw = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    if not raw.strip():
        return []
    parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False)
    root = etree.fromstring(raw, parser=parser)
    if root is None:
        return []

    entries: List[SitemapEntry] = []
    for node in root.iterfind(".//{*}url"):
        loc = node.find("{*}loc")
        if loc is None or not loc.text or not loc.text.strip():
            continue
        lastmod = node.find("{*}lastmod")
        last_modified = lastmod.text.strip() if lastmod is not None and lastmod.text else None
        entries.append(SitemapEntry(url=loc.text.strip(), last_modified=last_modified))
    return entries
