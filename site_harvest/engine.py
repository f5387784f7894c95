# File: site_harvest/engine.py
"""site_harvest.engine: Orchestration layer: старт, возобновление и пакетный обход поверх планировщика."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_harvest.config import HarvestConfig, SeedPolicy
from site_harvest.crawler.fetcher import Fetcher, HttpFetcher
from site_harvest.crawler.models import CrawlSession, PageResult, SitemapEntry
from site_harvest.crawler.scheduler import CrawlScheduler, RunOutcome, StatusCallback
from site_harvest.crawler.scope import session_key
from site_harvest.errors import CrawlInProgressError, FetchError
from site_harvest.logger import get_logger
from site_harvest.parser.sitemap_parser import parse_sitemap
from site_harvest.report.json_report import render_json
from site_harvest.sink import Redactor, ResultSink
from site_harvest.sitemap_diff import SitemapDiff, diff, plan_seeds
from site_harvest.storage import HistoryStore, SessionStore, SnapshotStore
from site_harvest.utils import remove_duplicates

__all__ = ["Engine", "SuspendedSessionInfo", "BatchPlan"]

logger = get_logger("engine")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class SuspendedSessionInfo:
    """Что показать пользователю перед выбором «продолжить / начать заново»."""

    root_key: str
    root_url: Optional[str]
    pages_crawled: int
    max_pages: int
    queued: int


@dataclass(slots=True, frozen=True)
class BatchPlan:
    """Результат сравнения снимков sitemap и итоговая затравка."""

    changes: SitemapDiff
    seeds: List[str]


class Engine:
    """Фасад для CLI и тестов: хранилища, загрузчик и запуск планировщика.

    Одновременно активен не больше одного обхода; повторный старт во время
    работы отклоняется с CrawlInProgressError.
    """

    def __init__(
        self,
        config: HarvestConfig,
        fetcher: Optional[Fetcher] = None,
        *,
        status: Optional[StatusCallback] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Инициализирует Engine; без fetcher используется HttpFetcher на время каждого обхода."""
        self.config = config
        self.fetcher = fetcher
        self.sessions = SessionStore(config.state_dir)
        self.history = HistoryStore(config.state_dir)
        self.snapshots = SnapshotStore(config.state_dir)
        self.sink = ResultSink(
            self.history,
            Redactor(config.redact_terms, config.redact_replacement),
            exporter=self._export if config.export_dir is not None else None,
        )
        self._status = status
        self._sleep = sleep
        self._clock = clock
        self._active_key: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._active_key is not None

    # ------------------------------------------------------------------ #
    # Resume decision                                                    #
    # ------------------------------------------------------------------ #

    def resume_if_suspended(self, root_url: Optional[str]) -> Optional[SuspendedSessionInfo]:
        """Возвращает сведения о приостановленной сессии, если её есть смысл продолжать."""
        session = self.sessions.get(session_key(root_url))
        if session is None or not session.is_resumable:
            return None
        return SuspendedSessionInfo(
            root_key=session.root_key,
            root_url=session.root_url,
            pages_crawled=session.pages_crawled,
            max_pages=session.max_pages,
            queued=len(session.queue),
        )

    # ------------------------------------------------------------------ #
    # Starting crawls                                                    #
    # ------------------------------------------------------------------ #

    async def start_crawl(self, root_url: str, max_pages: int, from_scratch: bool = False) -> RunOutcome:
        """Обход одного сайта от root_url.

        from_scratch=True отбрасывает сохранённую сессию; иначе сохранённая
        сессия продолжается с новым max_pages, а при её отсутствии
        создаётся новая.
        """
        self._ensure_idle()
        if max_pages < 1:
            raise ValueError(f"max_pages must be >= 1, got {max_pages}")
        key = session_key(root_url)
        session = None if from_scratch else self._load_resumable(key)
        if session is not None:
            session.max_pages = max_pages
            logger.info("Resuming session %s at %d/%d", key, session.pages_crawled, max_pages)
        else:
            session = CrawlSession(root_key=key, root_url=root_url, max_pages=max_pages, queue=[root_url])
            logger.info("Starting fresh session %s from %s", key, root_url)
        return await self._drive(session)

    async def start_batch_crawl(self, urls: Sequence[str], from_scratch: bool = True) -> RunOutcome:
        """Пакетный обход готового списка URL; фронтир не расширяется."""
        self._ensure_idle()
        key = session_key(None)
        session = None if from_scratch else self._load_resumable(key)
        if session is None:
            seeds = remove_duplicates([u.strip() for u in urls if u and u.strip()])
            if not seeds:
                raise ValueError("Batch crawl needs at least one URL")
            session = CrawlSession(root_key=key, root_url=None, max_pages=len(seeds), queue=seeds)
            logger.info("Starting batch crawl of %d URLs", len(seeds))
        return await self._drive(session)

    def _load_resumable(self, key: str) -> Optional[CrawlSession]:
        session = self.sessions.get(key)
        if session is not None and not session.is_resumable:
            self.sessions.delete(key)
            return None
        return session

    def _ensure_idle(self) -> None:
        if self._active_key is not None:
            raise CrawlInProgressError(f"Crawl of {self._active_key} is already running")

    async def _drive(self, session: CrawlSession) -> RunOutcome:
        """Гоняет планировщик до FINISHED, выдерживая паузы между пакетами."""
        self._active_key = session.root_key
        try:
            self.sessions.put(session)
            if self.fetcher is not None:
                return await self._run_with(session, self.fetcher)
            async with HttpFetcher(self.config) as fetcher:
                return await self._run_with(session, fetcher)
        finally:
            self._active_key = None

    async def _run_with(self, session: CrawlSession, fetcher: Fetcher) -> RunOutcome:
        scheduler = CrawlScheduler(
            session,
            fetcher,
            self.sink,
            self.sessions,
            self.config,
            status=self._status,
            sleep=self._sleep,
            clock=self._clock,
        )
        outcome = await scheduler.run()
        while outcome.paused:
            delay = max(0.0, (outcome.resume_at or 0.0) - self._clock())
            await self._sleep(delay)
            outcome = await scheduler.resume()
        return outcome

    # ------------------------------------------------------------------ #
    # Sitemap-driven batches                                             #
    # ------------------------------------------------------------------ #

    async def load_sitemap_snapshot(self, source: Optional[str] = None) -> List[SitemapEntry]:
        """Читает sitemap.xml из файла или по http(s) и возвращает снимок."""
        source = source or self.config.sitemap_source
        if not source:
            raise ValueError("No sitemap source given")
        if source.startswith(("http://", "https://")):
            xml = await self._download(source)
        else:
            xml = Path(source).expanduser().read_bytes()
        entries = parse_sitemap(xml)
        logger.info("Sitemap %s: %d entries", source, len(entries))
        return entries

    async def _download(self, url: str) -> bytes:
        timeout = ClientTimeout(total=self.config.timeout)
        try:
            async with ClientSession(timeout=timeout, headers={"User-Agent": self.config.user_agent}) as http:
                async with http.get(url) as resp:
                    if resp.status >= 400:
                        raise FetchError(url, f"HTTP {resp.status}")
                    return await resp.read()
        except (ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc

    def plan_sitemap_batch(
        self, entries: Sequence[SitemapEntry], policy: Optional[SeedPolicy] = None
    ) -> BatchPlan:
        """Сравнивает снимок с сохранённым, запоминает новый и строит затравку."""
        previous = self.snapshots.load()
        changes = diff(entries, previous)
        seeds = plan_seeds(entries, changes, self.history.crawled_urls(), policy or self.config.seed_policy)
        self.snapshots.save(list(entries))
        logger.info(
            "Sitemap diff: %d added, %d changed, %d seeds",
            len(changes.added), len(changes.changed), len(seeds),
        )
        return BatchPlan(changes=changes, seeds=seeds)

    # ------------------------------------------------------------------ #
    # History                                                            #
    # ------------------------------------------------------------------ #

    def delete_history(self, result_id: int) -> bool:
        return self.history.delete(result_id)

    def _export(self, result: PageResult) -> Path:
        return render_json(result, self.config.export_dir or Path("."))
