# site_harvest/crawler/fetcher.py
"""
Fetcher module: the page-fetch-and-extract collaborator of the scheduler.

The scheduler only needs an object with ``async fetch(url) -> PageContent``
that raises :class:`RateLimitedError` for rate/quota limits and
:class:`FetchError` for anything else. :class:`HttpFetcher` is the default
implementation on top of aiohttp and BeautifulSoup.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional, Protocol, runtime_checkable

from aiohttp import ClientError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup
from bs4.element import Tag

from site_harvest.config import HarvestConfig
from site_harvest.crawler.models import CrawlImage, CrawlLink, PageContent
from site_harvest.crawler.scope import resolve_link
from site_harvest.errors import FetchError, RateLimitedError


@runtime_checkable
class Fetcher(Protocol):
    async def fetch(self, url: str) -> PageContent: ...


def extract_page(html: str, base_url: str) -> PageContent:
    """Extract visible text, links (with anchor text) and images from *html*."""
    soup = BeautifulSoup(html, "html.parser")

    links: List[CrawlLink] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href = tag.get("href")
        if not isinstance(href, str):
            continue
        absolute = resolve_link(href, base_url)
        if absolute is None:
            continue
        links.append(CrawlLink(text=tag.get_text(" ", strip=True), url=absolute))

    images: List[CrawlImage] = []
    for tag in soup.find_all("img", src=True):
        if not isinstance(tag, Tag):
            continue
        src = tag.get("src")
        if not isinstance(src, str):
            continue
        absolute = resolve_link(src, base_url)
        alt = tag.get("alt")
        images.append(CrawlImage(src=absolute or src.strip(), alt=alt if isinstance(alt, str) else ""))

    # Visible text (skip <script>, <style>, etc.)
    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    text = " ".join(soup.stripped_strings)

    return PageContent(content=text, images=images, links=links)


class HttpFetcher:
    """Fetches HTML pages over HTTP and extracts their content.

    Use as an async context manager so the underlying ClientSession is
    closed::

        async with HttpFetcher(config) as fetcher:
            page = await fetcher.fetch("https://example.com/")
    """

    RATE_LIMIT_STATUS = 429

    def __init__(self, config: HarvestConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpFetcher:
        if self.session is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    async def fetch(self, url: str) -> PageContent:
        if self.session is None:
            raise RuntimeError("Session not initialized")
        try:
            async with self.session.get(url) as resp:
                if resp.status == self.RATE_LIMIT_STATUS:
                    raise RateLimitedError(url, f"HTTP {resp.status}")
                if resp.status >= 400:
                    raise FetchError(url, f"HTTP {resp.status}")
                mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                if "html" not in mime:
                    raise FetchError(url, f"unsupported content type {mime or 'unknown'}")
                try:
                    html = await resp.text()
                except (UnicodeDecodeError, LookupError) as exc:
                    raise FetchError(url, f"undecodable body: {exc}") from exc
                final_url = str(resp.url)
        except asyncio.TimeoutError as exc:
            raise FetchError(url, "timeout") from exc
        except ClientError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc
        return extract_page(html, final_url)


__all__ = ("Fetcher", "HttpFetcher", "extract_page")
