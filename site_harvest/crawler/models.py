# site_harvest/crawler/models.py
"""
Data models for the SiteHarvest crawler: durable session state,
extraction output and the immutable page results kept in history.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple


@dataclass(slots=True, frozen=True)
class CrawlLink:
    """Anchor text and absolute URL of an extracted link."""

    text: str
    url: str


@dataclass(slots=True, frozen=True)
class CrawlImage:
    """Source URL and alt text of an extracted image."""

    src: str
    alt: str


@dataclass(slots=True)
class PageContent:
    """What the fetch collaborator extracted from one page."""

    content: str
    images: List[CrawlImage] = field(default_factory=list)
    links: List[CrawlLink] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class PageResult:
    """Final, redacted result of one crawled page. Never mutated after creation."""

    id: int
    url: str
    content: str
    images: Tuple[CrawlImage, ...]
    links: Tuple[CrawlLink, ...]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "content": self.content,
            "images": [{"src": i.src, "alt": i.alt} for i in self.images],
            "links": [{"text": l.text, "url": l.url} for l in self.links],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PageResult:
        return cls(
            id=int(data["id"]),
            url=data["url"],
            content=data.get("content", ""),
            images=tuple(CrawlImage(i.get("src", ""), i.get("alt", "")) for i in data.get("images", [])),
            links=tuple(CrawlLink(l.get("text", ""), l.get("url", "")) for l in data.get("links", [])),
            timestamp=data.get("timestamp", ""),
        )


@dataclass(slots=True, frozen=True)
class SitemapEntry:
    """One (url, lastmod) pair of a sitemap snapshot."""

    url: str
    last_modified: Optional[str] = None


@dataclass(slots=True)
class CrawlSession:
    """Durable state of one crawl root.

    ``visited`` keeps insertion order so that the JSON form is stable;
    membership checks go through an index set rebuilt on construction.
    """

    root_key: str
    root_url: Optional[str]
    max_pages: int
    queue: List[str] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    batch_counter: int = 0
    pages_crawled: int = 0
    _visited_index: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be >= 1, got {self.max_pages}")
        self._visited_index = set(self.visited)

    @property
    def is_batch(self) -> bool:
        return self.root_url is None

    @property
    def is_resumable(self) -> bool:
        return bool(self.queue) and self.pages_crawled < self.max_pages

    def is_visited(self, url: str) -> bool:
        return url in self._visited_index

    def mark_visited(self, url: str) -> None:
        if url not in self._visited_index:
            self._visited_index.add(url)
            self.visited.append(url)

    def enqueue(self, url: str) -> bool:
        """Append *url* to the frontier unless it is already visited or queued."""
        if url in self._visited_index or url in self.queue:
            return False
        self.queue.append(url)
        return True

    def pop(self) -> str:
        return self.queue.pop(0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_key": self.root_key,
            "root_url": self.root_url,
            "max_pages": self.max_pages,
            "queue": list(self.queue),
            "visited": list(self.visited),
            "batch_counter": self.batch_counter,
            "pages_crawled": self.pages_crawled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CrawlSession:
        return cls(
            root_key=data["root_key"],
            root_url=data.get("root_url"),
            max_pages=int(data["max_pages"]),
            queue=list(data.get("queue", [])),
            visited=list(data.get("visited", [])),
            batch_counter=int(data.get("batch_counter", 0)),
            pages_crawled=int(data.get("pages_crawled", 0)),
        )


__all__ = (
    "CrawlLink",
    "CrawlImage",
    "PageContent",
    "PageResult",
    "SitemapEntry",
    "CrawlSession",
)
