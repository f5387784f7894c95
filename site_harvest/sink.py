"""Result sink: text redaction, history append and per-page export."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Iterable, Optional

from site_harvest.crawler.models import CrawlImage, CrawlLink, PageContent, PageResult
from site_harvest.logger import get_logger
from site_harvest.storage import HistoryStore
from site_harvest.utils import utc_now_iso

__all__ = ["Redactor", "ResultSink", "Exporter"]

logger = get_logger("sink")

Exporter = Callable[[PageResult], Optional[Path]]


class Redactor:
    """Case-insensitive replacement of a fixed set of terms.

    Longer terms are tried first, so ``gohighlevel`` wins over ``highlevel``.
    Only text is touched; URLs pass through unchanged.
    """

    def __init__(self, terms: Iterable[str], replacement: str) -> None:
        unique = sorted({t for t in terms if t}, key=len, reverse=True)
        self.replacement = replacement
        self._pattern = (
            re.compile("|".join(re.escape(t) for t in unique), re.IGNORECASE) if unique else None
        )

    def __call__(self, text: str) -> str:
        if self._pattern is None or not text:
            return text
        return self._pattern.sub(lambda _: self.replacement, text)

    def page(self, page: PageContent) -> PageContent:
        return PageContent(
            content=self(page.content),
            images=[CrawlImage(src=i.src, alt=self(i.alt)) for i in page.images],
            links=[CrawlLink(text=self(l.text), url=l.url) for l in page.links],
        )


class ResultSink:
    """Turns extracted pages into final :class:`PageResult` records.

    ``process`` redacts, appends to history (write failures propagate) and
    hands the result to the optional exporter, whose failures are only
    logged.
    """

    def __init__(
        self,
        history: HistoryStore,
        redactor: Redactor,
        exporter: Optional[Exporter] = None,
    ) -> None:
        self.history = history
        self.redactor = redactor
        self.exporter = exporter

    def process(self, url: str, page: PageContent) -> PageResult:
        clean = self.redactor.page(page)
        result = PageResult(
            id=self.history.next_id(),
            url=url,
            content=clean.content,
            images=tuple(clean.images),
            links=tuple(clean.links),
            timestamp=utc_now_iso(),
        )
        self.history.append(result)
        self._export(result)
        return result

    def _export(self, result: PageResult) -> None:
        if self.exporter is None:
            return
        try:
            path = self.exporter(result)
        except Exception as exc:
            logger.warning("Export of %s failed: %s", result.url, exc)
            return
        if path is not None:
            logger.debug("Exported %s -> %s", result.url, path)
