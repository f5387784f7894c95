# File: tests/conftest.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

import pytest

from site_harvest.config import HarvestConfig
from site_harvest.crawler.models import CrawlLink, PageContent
from site_harvest.errors import FetchError


class ScriptedFetcher:
    """
    Fetch double: returns the PageContent registered for a URL or raises the
    registered exception. Unknown URLs yield an empty page.
    """

    def __init__(self, pages: Dict[str, Union[PageContent, Exception]] | None = None) -> None:
        self.pages: Dict[str, Union[PageContent, Exception]] = dict(pages or {})
        self.calls: List[str] = []

    async def fetch(self, url: str) -> PageContent:
        self.calls.append(url)
        outcome = self.pages.get(url, PageContent(content=f"page {url}"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordedSleep:
    """Async sleep replacement that only records the requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def page(text: str = "", *links: str) -> PageContent:
    """Build a PageContent whose links carry their URL as anchor text."""
    return PageContent(content=text, links=[CrawlLink(text=url, url=url) for url in links])


def failing(url: str) -> FetchError:
    return FetchError(url, "boom")


@pytest.fixture()
def state_dir(tmp_path) -> Path:
    return tmp_path / "state"


@pytest.fixture()
def config(state_dir) -> HarvestConfig:
    """
    Config with short, distinguishable delays so tests can tell
    request delay, error backoff and batch pause apart.
    """
    return HarvestConfig(
        state_dir=state_dir,
        batch_size=10,
        batch_pause=900.0,
        request_delay=2.0,
        error_delay=5.0,
    )


@pytest.fixture()
def sleep() -> RecordedSleep:
    return RecordedSleep()
