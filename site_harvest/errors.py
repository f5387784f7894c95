"""Exception hierarchy shared by the scheduler, the stores and the engine."""
from __future__ import annotations


class HarvestError(Exception):
    """Base class for all SiteHarvest errors."""


class FetchError(HarvestError):
    """A page could not be fetched or extracted. The URL is skipped."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class RateLimitedError(FetchError):
    """The fetch collaborator reported a rate or quota limit."""


class PersistenceError(HarvestError):
    """A session, history or snapshot write failed."""


class SchedulerStateError(HarvestError):
    """An operation was invoked in a scheduler state that does not allow it."""


class CrawlInProgressError(HarvestError):
    """A crawl is already running in this engine."""


__all__ = [
    "HarvestError",
    "FetchError",
    "RateLimitedError",
    "PersistenceError",
    "SchedulerStateError",
    "CrawlInProgressError",
]
