"""
Crawl scheduler: a resumable, batched breadth-first walk over one session.

The scheduler owns a single :class:`CrawlSession` and drains its queue one
URL at a time. After ``batch_size`` attempts it enters ``PAUSED`` and
returns a :class:`RunOutcome` carrying the time at which the caller should
call :meth:`CrawlScheduler.resume`. Resuming runs the very same loop.

The session is written through to the :class:`SessionStore` after every
state change, so a restarted process loses at most the fetch in flight.
"""
from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from site_harvest.config import HarvestConfig
from site_harvest.crawler.fetcher import Fetcher
from site_harvest.crawler.models import CrawlSession, PageContent
from site_harvest.crawler.scope import admissible_links
from site_harvest.errors import RateLimitedError, SchedulerStateError
from site_harvest.logger import get_logger
from site_harvest.sink import ResultSink
from site_harvest.storage import SessionStore

__all__ = ("SchedulerState", "RunOutcome", "CrawlScheduler", "StatusCallback")

StatusCallback = Callable[[str], None]
SleepFunc = Callable[[float], Awaitable[None]]


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(slots=True, frozen=True)
class RunOutcome:
    """Where :meth:`CrawlScheduler.run` stopped."""

    state: SchedulerState
    pages_crawled: int
    resume_at: Optional[float] = None

    @property
    def paused(self) -> bool:
        return self.state is SchedulerState.PAUSED


class CrawlScheduler:
    """Drives one crawl session through fetch, sink and store."""

    def __init__(
        self,
        session: CrawlSession,
        fetcher: Fetcher,
        sink: ResultSink,
        store: SessionStore,
        config: HarvestConfig,
        *,
        status: Optional[StatusCallback] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.fetcher = fetcher
        self.sink = sink
        self.store = store
        self.config = config
        self.state = SchedulerState.IDLE
        self.resume_at: Optional[float] = None
        self._status = status
        self._sleep = sleep
        self._clock = clock
        self.logger = get_logger("scheduler")

    async def run(self) -> RunOutcome:
        if self.state in (SchedulerState.RUNNING, SchedulerState.FINISHED):
            raise SchedulerStateError(f"cannot run a scheduler that is {self.state.value}")
        self.state = SchedulerState.RUNNING
        self.resume_at = None
        session = self.session

        while session.queue and session.pages_crawled < session.max_pages:
            if session.batch_counter >= self.config.batch_size:
                return self._pause()

            url = session.pop()
            self._persist()
            if session.is_visited(url):
                continue

            self._notify(f"[{session.pages_crawled + 1}/{session.max_pages}] Crawling {url}")
            try:
                page = await self.fetcher.fetch(url)
            except RateLimitedError as exc:
                self.logger.warning("Rate limited on %s: %s", url, exc)
                await self._record_failure(url, "Rate limit reached, backing off before the next page.")
                continue
            except Exception as exc:
                self.logger.warning("Crawl of %s failed: %s", url, exc)
                await self._record_failure(url, f"Crawling {url} failed, page skipped.")
                continue

            await self._record_success(url, page)

        return self._finish()

    async def resume(self) -> RunOutcome:
        if self.state is not SchedulerState.PAUSED:
            raise SchedulerStateError(f"cannot resume a scheduler that is {self.state.value}")
        return await self.run()

    async def _record_success(self, url: str, page: PageContent) -> None:
        session = self.session
        result = self.sink.process(url, page)
        session.mark_visited(url)
        session.pages_crawled += 1
        session.batch_counter += 1
        added = 0
        for link in admissible_links(session, url, result.links):
            if session.enqueue(link):
                added += 1
        self._persist()
        self.logger.info(
            "Crawled %s (%d/%d), %d new links, %d queued",
            url, session.pages_crawled, session.max_pages, added, len(session.queue),
        )
        self._notify(f"Waiting {self.config.request_delay:g}s before the next request...")
        await self._sleep(self.config.request_delay)

    async def _record_failure(self, url: str, message: str) -> None:
        session = self.session
        session.mark_visited(url)
        session.pages_crawled += 1
        session.batch_counter += 1
        self._persist()
        self._notify(message)
        await self._sleep(self.config.error_delay)

    def _pause(self) -> RunOutcome:
        self.session.batch_counter = 0
        self._persist()
        self.state = SchedulerState.PAUSED
        self.resume_at = self._clock() + self.config.batch_pause
        minutes, seconds = divmod(int(self.config.batch_pause), 60)
        self._notify(f"Batch complete. Pausing, next batch starts in {minutes}m {seconds}s.")
        self.logger.info(
            "Session %s paused after batch of %d, %d queued",
            self.session.root_key, self.config.batch_size, len(self.session.queue),
        )
        return RunOutcome(self.state, self.session.pages_crawled, self.resume_at)

    def _finish(self) -> RunOutcome:
        self.store.delete(self.session.root_key)
        self.state = SchedulerState.FINISHED
        self._notify(f"Crawl finished. {self.session.pages_crawled} pages processed.")
        self.logger.info("Session %s finished: %d pages", self.session.root_key, self.session.pages_crawled)
        return RunOutcome(self.state, self.session.pages_crawled)

    def _persist(self) -> None:
        self.store.put(self.session)

    def _notify(self, message: str) -> None:
        if self._status is not None:
            self._status(message)
