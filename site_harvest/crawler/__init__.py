"""site_harvest.crawler: модели сессии, правила области обхода, загрузчик и планировщик."""

from .fetcher import Fetcher, HttpFetcher
from .models import CrawlImage, CrawlLink, CrawlSession, PageContent, PageResult, SitemapEntry
from .scheduler import CrawlScheduler, RunOutcome, SchedulerState

__all__ = [
    "CrawlImage",
    "CrawlLink",
    "CrawlScheduler",
    "CrawlSession",
    "Fetcher",
    "HttpFetcher",
    "PageContent",
    "PageResult",
    "RunOutcome",
    "SchedulerState",
    "SitemapEntry",
]
