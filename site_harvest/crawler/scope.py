# site_harvest/crawler/scope.py
"""
Session identity and frontier scope rules for SiteHarvest.
"""
from __future__ import annotations

from typing import Iterable, List, Optional
from urllib.parse import urldefrag, urljoin, urlparse

from site_harvest.crawler.models import CrawlLink, CrawlSession
from site_harvest.utils import safe_filename

#: fixed identity of multi-origin (sitemap-driven) crawls
BATCH_ROOT_KEY = "__batch__"


def session_key(root_url: Optional[str]) -> str:
    """
    Return the store key of a crawl root.

    The key is the lowercased hostname, so ``https://x.com/a`` and
    ``http://X.com/b`` share one session. Roots without a hostname fall
    back to the raw string with non-alphanumerics replaced by ``_``.
    ``None`` designates the batch session.
    """
    if root_url is None:
        return BATCH_ROOT_KEY
    try:
        host = urlparse(root_url).hostname
    except ValueError:
        host = None
    if host:
        return host.lower()
    return safe_filename(root_url)


def resolve_link(href: str, base_url: str) -> Optional[str]:
    """
    Resolve *href* against *base_url*; return None for anything that is not
    an absolute http(s) URL with a host.
    """
    raw = (href or "").strip()
    if not raw or raw.startswith(("mailto:", "javascript:", "tel:", "data:")):
        return None
    try:
        absolute, _ = urldefrag(urljoin(base_url, raw))
        parsed = urlparse(absolute)
        host = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not host:
        return None
    return absolute


def same_host(url: str, root_url: str) -> bool:
    try:
        a = urlparse(url).hostname
        b = urlparse(root_url).hostname
    except ValueError:
        return False
    return a is not None and b is not None and a.lower() == b.lower()


def admissible_links(session: CrawlSession, page_url: str, links: Iterable[CrawlLink]) -> List[str]:
    """
    Links of *page_url* that may join the frontier of *session*.

    Batch sessions never grow. In single-root mode only same-host links
    are admitted. Visited and queued URLs are filtered out; the result has
    no duplicates and keeps extraction order.
    """
    if session.is_batch or session.root_url is None:
        return []
    admitted: List[str] = []
    for link in links:
        absolute = resolve_link(link.url, page_url)
        if absolute is None or not same_host(absolute, session.root_url):
            continue
        if session.is_visited(absolute) or absolute in session.queue or absolute in admitted:
            continue
        admitted.append(absolute)
    return admitted


__all__ = ("BATCH_ROOT_KEY", "session_key", "resolve_link", "same_host", "admissible_links")
