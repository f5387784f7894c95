# File: site_harvest/storage.py
"""Durable stores: crawl sessions, the page history log and the last sitemap snapshot.

Every store keeps plain JSON on disk and writes through a temporary file
that replaces the target, so a crash never leaves a half-written record.
Write failures surface as :class:`~site_harvest.errors.PersistenceError`.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Iterator, List, Optional, Set, Union

from site_harvest.crawler.models import CrawlSession, PageResult, SitemapEntry
from site_harvest.errors import PersistenceError
from site_harvest.logger import get_logger

__all__ = ["SessionStore", "HistoryStore", "SnapshotStore"]

logger = get_logger("storage")


def _atomic_write(path: Path, payload: Any) -> None:
    try:
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}") from exc


def _read_json(path: Path) -> Optional[Any]:
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return None


class SessionStore:
    """One JSON file per session key under ``<root>/sessions``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root) / "sessions"

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[CrawlSession]:
        data = _read_json(self._path(key))
        if data is None:
            return None
        try:
            return CrawlSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed session %s: %s", key, exc)
            return None

    def put(self, session: CrawlSession) -> None:
        _atomic_write(self._path(session.root_key), session.to_dict())

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise PersistenceError(f"Cannot delete {path}: {exc}") from exc
        return True


class HistoryStore:
    """Append-only log of :class:`PageResult`, shared by all sessions.

    On disk: ``{"last_id": N, "results": [...]}``. ``last_id`` is the highest
    id ever issued, so deleting the newest entry never frees its id. A bare
    list of results is also accepted on load.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.path = Path(root) / "history.json"
        self._items: List[PageResult] = []
        self._last_id = 0
        self._load()

    def _load(self) -> None:
        data = _read_json(self.path)
        if data is None:
            return
        if isinstance(data, dict):
            raw_items, last_id = data.get("results", []), data.get("last_id", 0)
        else:
            raw_items, last_id = data, 0
        if not isinstance(raw_items, list):
            logger.warning("Ignoring malformed history file %s: results is not a list", self.path)
            return
        for raw in raw_items:
            try:
                self._items.append(PageResult.from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed history entry in %s: %r", self.path, exc)
        ids = [r.id for r in self._items]
        self._last_id = max([last_id if isinstance(last_id, int) else 0, *ids])

    def _write(self, items: List[PageResult], last_id: int) -> None:
        _atomic_write(self.path, {"last_id": last_id, "results": [r.to_dict() for r in items]})
        self._items = items
        self._last_id = last_id

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PageResult]:
        return iter(list(self._items))

    def results(self) -> List[PageResult]:
        return list(self._items)

    def next_id(self) -> int:
        """Millisecond timestamp, bumped past every id issued so far."""
        now_ms = int(time.time() * 1000)
        return max(now_ms, self._last_id + 1)

    def append(self, result: PageResult) -> None:
        self._write(self._items + [result], max(self._last_id, result.id))

    def delete(self, result_id: int) -> bool:
        items = [r for r in self._items if r.id != result_id]
        if len(items) == len(self._items):
            return False
        self._write(items, self._last_id)
        return True

    def crawled_urls(self) -> Set[str]:
        return {r.url for r in self._items}


class SnapshotStore:
    """Keeps the last sitemap snapshot so the next run can diff against it."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.path = Path(root) / "sitemap_snapshot.json"

    def load(self) -> List[SitemapEntry]:
        data = _read_json(self.path)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring malformed sitemap snapshot %s: not a list", self.path)
            return []
        entries: List[SitemapEntry] = []
        for raw in data:
            try:
                entries.append(SitemapEntry(url=str(raw["url"]), last_modified=raw.get("last_modified")))
            except (KeyError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed snapshot entry in %s: %r", self.path, exc)
        return entries

    def save(self, entries: List[SitemapEntry]) -> None:
        _atomic_write(self.path, [{"url": e.url, "last_modified": e.last_modified} for e in entries])
