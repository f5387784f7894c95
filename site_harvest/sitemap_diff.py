# File: site_harvest/sitemap_diff.py
"""site_harvest.sitemap_diff: сравнение снимков sitemap и порядок затравки пакетного обхода."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Sequence

from site_harvest.config import SeedPolicy
from site_harvest.crawler.models import SitemapEntry
from site_harvest.utils import remove_duplicates

__all__: Sequence[str] = ("SitemapDiff", "diff", "plan_seeds")


@dataclass(slots=True)
class SitemapDiff:
    """Новые и изменённые URL в порядке нового снимка."""

    added: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)

    @property
    def fresh(self) -> List[str]:
        return self.added + self.changed


def diff(new_entries: Sequence[SitemapEntry], old_entries: Sequence[SitemapEntry]) -> SitemapDiff:
    """Сравнивает два снимка.

    URL считается добавленным, если его нет в старом снимке, и изменённым,
    если lastmod отличается (строгое неравенство строк, без разбора дат).
    """
    previous: Dict[str, Optional[str]] = {e.url: e.last_modified for e in old_entries}
    result = SitemapDiff()
    for entry in new_entries:
        if entry.url not in previous:
            result.added.append(entry.url)
        elif previous[entry.url] != entry.last_modified:
            result.changed.append(entry.url)
    return result


def plan_seeds(
    new_entries: Sequence[SitemapEntry],
    changes: SitemapDiff,
    crawled: Collection[str],
    policy: SeedPolicy = "prepend",
) -> List[str]:
    """Строит список затравки пакетного обхода.

    Остальные URL снимка, ещё не обойдённые ни разу, идут после свежих
    (``prepend``) или перед ними (``append``).
    """
    if policy not in ("prepend", "append"):
        raise ValueError(f"Неизвестная политика затравки: {policy}")
    fresh = changes.fresh
    fresh_set = set(fresh)
    pending = [e.url for e in new_entries if e.url not in fresh_set and e.url not in crawled]
    ordered = fresh + pending if policy == "prepend" else pending + fresh
    return remove_duplicates(ordered)
