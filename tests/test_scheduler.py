# Test-suite for the SiteHarvest crawl scheduler
from __future__ import annotations

import pytest

from conftest import ScriptedFetcher, failing, page
from site_harvest.crawler.models import CrawlSession, PageContent
from site_harvest.crawler.scheduler import CrawlScheduler, SchedulerState
from site_harvest.errors import PersistenceError, RateLimitedError, SchedulerStateError
from site_harvest.sink import Redactor, ResultSink
from site_harvest.storage import HistoryStore, SessionStore

ROOT = "https://x.com/p1"


# --------------------------------------------------------------------------- #
#                               Helper utilities                              #
# --------------------------------------------------------------------------- #


class SnoopingStore(SessionStore):
    """SessionStore that checks session invariants on every write."""

    def __init__(self, root) -> None:
        super().__init__(root)
        self.snapshots: list[dict] = []

    def put(self, session: CrawlSession) -> None:
        data = session.to_dict()
        queued, visited = data["queue"], data["visited"]
        assert len(queued) == len(set(queued))
        assert len(visited) == len(set(visited))
        assert not set(queued) & set(visited)
        if self.snapshots:
            assert data["pages_crawled"] >= self.snapshots[-1]["pages_crawled"]
        self.snapshots.append(data)
        super().put(session)


def make_scheduler(config, sleep, fetcher, session=None, *, status=None, clock=lambda: 1000.0, snoop=True):
    store = SnoopingStore(config.state_dir) if snoop else SessionStore(config.state_dir)
    history = HistoryStore(config.state_dir)
    sink = ResultSink(history, Redactor(config.redact_terms, config.redact_replacement))
    session = session or CrawlSession(root_key="x.com", root_url=ROOT, max_pages=50, queue=[ROOT])
    scheduler = CrawlScheduler(
        session, fetcher, sink, store, config, status=status, sleep=sleep, clock=clock
    )
    return scheduler, store, history


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_crawl_follows_same_host_links_only(config, sleep):
    fetcher = ScriptedFetcher(
        {
            ROOT: page("root", "https://y.com/z", "https://x.com/p2", "/p2#top", "mailto:a@x.com"),
            "https://x.com/p2": page("second", ROOT),
        }
    )
    scheduler, store, history = make_scheduler(config, sleep, fetcher)

    outcome = await scheduler.run()

    assert outcome.state is SchedulerState.FINISHED
    assert fetcher.calls == [ROOT, "https://x.com/p2"]
    assert [r.url for r in history.results()] == [ROOT, "https://x.com/p2"]
    assert all("https://y.com/z" not in snap["queue"] for snap in store.snapshots)
    assert store.get("x.com") is None


@pytest.mark.asyncio()
async def test_duplicate_enqueue_is_discarded_without_progress(config, sleep):
    session = CrawlSession(
        root_key="x.com", root_url=ROOT, max_pages=10, queue=["https://x.com/a"], visited=[]
    )
    # simulate a stale duplicate that slipped into the frontier
    session.queue.append("https://x.com/a")
    fetcher = ScriptedFetcher()
    scheduler, _, _ = make_scheduler(config, sleep, fetcher, session, snoop=False)

    outcome = await scheduler.run()

    assert fetcher.calls == ["https://x.com/a"]
    assert outcome.pages_crawled == 1


@pytest.mark.asyncio()
async def test_pages_crawled_counts_failures(config, sleep):
    fetcher = ScriptedFetcher(
        {
            ROOT: page("root", "https://x.com/bad", "https://x.com/ok"),
            "https://x.com/bad": failing("https://x.com/bad"),
        }
    )
    scheduler, store, history = make_scheduler(config, sleep, fetcher)

    outcome = await scheduler.run()

    assert outcome.pages_crawled == 3
    assert [r.url for r in history.results()] == [ROOT, "https://x.com/ok"]
    # request delay after successes, longer backoff after the failure
    assert sleep.delays == [2.0, 5.0, 2.0]
    counts = [s["pages_crawled"] for s in store.snapshots]
    assert counts == sorted(counts)


@pytest.mark.asyncio()
async def test_failed_page_is_never_retried(config, sleep):
    bad = "https://x.com/bad"
    fetcher = ScriptedFetcher(
        {
            ROOT: page("root", bad),
            bad: failing(bad),
            "https://x.com/later": page("later", bad),
        }
    )
    session = CrawlSession(
        root_key="x.com", root_url=ROOT, max_pages=10, queue=[ROOT, "https://x.com/later"]
    )
    scheduler, _, _ = make_scheduler(config, sleep, fetcher, session)

    await scheduler.run()

    assert fetcher.calls.count(bad) == 1
    assert scheduler.session.is_visited(bad)


@pytest.mark.asyncio()
async def test_rate_limit_backs_off_and_continues(config, sleep):
    messages: list[str] = []
    fetcher = ScriptedFetcher(
        {ROOT: page("root", "https://x.com/a"), "https://x.com/a": RateLimitedError("https://x.com/a", "429")}
    )
    session = CrawlSession(
        root_key="x.com", root_url=ROOT, max_pages=10, queue=["https://x.com/a", ROOT]
    )
    scheduler, _, _ = make_scheduler(config, sleep, fetcher, session, status=messages.append)

    outcome = await scheduler.run()

    assert outcome.state is SchedulerState.FINISHED
    assert fetcher.calls == ["https://x.com/a", ROOT]
    assert any("Rate limit" in m for m in messages)
    assert sleep.delays[0] == config.error_delay


@pytest.mark.asyncio()
async def test_pause_after_batch_size_pops(config, sleep):
    urls = [f"https://x.com/{i}" for i in range(15)]
    session = CrawlSession(root_key="x.com", root_url=ROOT, max_pages=50, queue=list(urls))
    fetcher = ScriptedFetcher({urls[3]: failing(urls[3])})
    scheduler, store, _ = make_scheduler(config, sleep, fetcher, session, clock=lambda: 1000.0)

    outcome = await scheduler.run()

    assert outcome.state is SchedulerState.PAUSED
    assert outcome.resume_at == 1000.0 + config.batch_pause
    assert len(fetcher.calls) == 10
    assert scheduler.session.batch_counter == 0
    assert scheduler.session.pages_crawled == 10
    persisted = store.get("x.com")
    assert persisted is not None
    assert persisted.batch_counter == 0
    assert persisted.queue == urls[10:]


@pytest.mark.asyncio()
async def test_resume_continues_the_same_session(config, sleep):
    urls = [f"https://x.com/{i}" for i in range(12)]
    session = CrawlSession(root_key="x.com", root_url=ROOT, max_pages=50, queue=list(urls))
    fetcher = ScriptedFetcher()
    scheduler, store, _ = make_scheduler(config, sleep, fetcher, session)

    first = await scheduler.run()
    second = await scheduler.resume()

    assert first.paused
    assert second.state is SchedulerState.FINISHED
    assert fetcher.calls == urls
    assert second.pages_crawled == 12
    assert store.get("x.com") is None


@pytest.mark.asyncio()
async def test_resume_requires_paused_state(config, sleep):
    scheduler, _, _ = make_scheduler(config, sleep, ScriptedFetcher())

    with pytest.raises(SchedulerStateError):
        await scheduler.resume()

    await scheduler.run()
    with pytest.raises(SchedulerStateError):
        await scheduler.run()


@pytest.mark.asyncio()
async def test_page_budget_terminates_and_clears_store(config, sleep):
    links = [f"https://x.com/{i}" for i in range(20)]
    fetcher = ScriptedFetcher({ROOT: page("root", *links)})
    session = CrawlSession(root_key="x.com", root_url=ROOT, max_pages=3, queue=[ROOT])
    scheduler, store, history = make_scheduler(config, sleep, fetcher, session)

    outcome = await scheduler.run()

    assert outcome.state is SchedulerState.FINISHED
    assert outcome.pages_crawled == 3
    assert len(history) == 3
    assert store.get("x.com") is None
    assert not (config.state_dir / "sessions" / "x.com.json").exists()


@pytest.mark.asyncio()
async def test_batch_session_never_grows(config, sleep):
    seeds = ["https://a.com/1", "https://b.com/2"]
    fetcher = ScriptedFetcher({seeds[0]: page("a", "https://a.com/other")})
    session = CrawlSession(root_key="__batch__", root_url=None, max_pages=2, queue=list(seeds))
    scheduler, store, _ = make_scheduler(config, sleep, fetcher, session)

    await scheduler.run()

    assert fetcher.calls == seeds
    assert all(len(snap["queue"]) <= 2 for snap in store.snapshots)


@pytest.mark.asyncio()
async def test_redaction_is_applied_before_history(config, sleep):
    fetcher = ScriptedFetcher({ROOT: PageContent(content="Use GoHighLevel now")})
    scheduler, _, history = make_scheduler(config, sleep, fetcher)

    await scheduler.run()

    assert history.results()[0].content == "Use mightytools now"


@pytest.mark.asyncio()
async def test_persistence_failure_propagates(config, sleep):
    class BrokenStore(SessionStore):
        def put(self, session):
            raise PersistenceError("disk full")

    history = HistoryStore(config.state_dir)
    scheduler = CrawlScheduler(
        CrawlSession(root_key="x.com", root_url=ROOT, max_pages=5, queue=[ROOT]),
        ScriptedFetcher(),
        ResultSink(history, Redactor([], "")),
        BrokenStore(config.state_dir),
        config,
        sleep=sleep,
    )

    with pytest.raises(PersistenceError):
        await scheduler.run()
