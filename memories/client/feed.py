"""
client/feed.py

Client-side feed caches.

Contract:
- Two caches: the global feed and the per-profile feed.
- Every successful mutation is applied to each cache that holds the entity,
  by id, keeping order and every other entry untouched.
- Creation prepends to the global feed only; the profile feed is refreshed
  by an explicit fetch.
- Filtering and sorting only ever look at what is cached.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional

from ..schemas import CommentOut, MemoryOut


class SortMode(str, Enum):
    LATEST = "latest"
    OLDEST = "oldest"
    POPULAR = "popular"


class FeedCache:
    """Ordered, in-memory mirror of one server-side memory query."""

    def __init__(self, items: Optional[Iterable[MemoryOut]] = None) -> None:
        self._items: List[MemoryOut] = list(items or [])

    @property
    def items(self) -> List[MemoryOut]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def ids(self) -> List[str]:
        return [m.id for m in self._items]

    def get(self, memory_id: str) -> Optional[MemoryOut]:
        for m in self._items:
            if m.id == memory_id:
                return m
        return None

    def reset(self, items: Iterable[MemoryOut]) -> None:
        self._items = list(items)

    def extend(self, items: Iterable[MemoryOut]) -> None:
        self._items.extend(items)

    def prepend(self, memory: MemoryOut) -> None:
        self._items.insert(0, memory)

    def replace(self, memory: MemoryOut) -> bool:
        found = False
        out: List[MemoryOut] = []
        for m in self._items:
            if m.id == memory.id:
                out.append(memory)
                found = True
            else:
                out.append(m)
        self._items = out
        return found

    def patch(self, memory_id: str, **fields: Any) -> bool:
        """Replace selected fields (e.g. likes, comments) of the matching entry."""
        found = False
        out: List[MemoryOut] = []
        for m in self._items:
            if m.id == memory_id:
                out.append(m.model_copy(update=fields))
                found = True
            else:
                out.append(m)
        self._items = out
        return found

    def remove(self, memory_id: str) -> bool:
        before = len(self._items)
        self._items = [m for m in self._items if m.id != memory_id]
        return len(self._items) != before


class FeedState:
    """Global feed + per-profile feed, kept consistent after mutations."""

    def __init__(self) -> None:
        self.feed = FeedCache()
        self.profile_feed = FeedCache()
        self.current_page = 1
        self.total_pages = 1
        self.tag: Optional[str] = None

    def _caches(self) -> List[FeedCache]:
        return [self.feed, self.profile_feed]

    # Server reads

    def load_page(self, memories: Iterable[MemoryOut], *, page: int, total_pages: int, tag: Optional[str]) -> None:
        """Page 1 replaces the global feed; later pages append to it."""
        if page <= 1:
            self.feed.reset(memories)
        else:
            self.feed.extend(memories)
        self.current_page = page
        self.total_pages = total_pages
        self.tag = tag

    def load_profile(self, memories: Iterable[MemoryOut]) -> None:
        self.profile_feed.reset(memories)

    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    # Mutations

    def apply_created(self, memory: MemoryOut) -> None:
        self.feed.prepend(memory)

    def apply_updated(self, memory: MemoryOut) -> None:
        for cache in self._caches():
            cache.replace(memory)

    def apply_deleted(self, memory_id: str) -> None:
        for cache in self._caches():
            cache.remove(memory_id)

    def apply_likes(self, memory_id: str, likes: List[str]) -> None:
        for cache in self._caches():
            cache.patch(memory_id, likes=list(likes))

    def apply_comments(self, memory_id: str, comments: List[CommentOut]) -> None:
        for cache in self._caches():
            cache.patch(memory_id, comments=list(comments))


# ----------------------------
# Filtering / sorting (cached page only)
# ----------------------------

def _created(memory: MemoryOut) -> datetime:
    try:
        dt = datetime.fromisoformat(memory.created_at)
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def filter_memories(
    memories: Iterable[MemoryOut],
    *,
    search: Optional[str] = None,
    tag: Optional[str] = None,
) -> List[MemoryOut]:
    needle = (search or "").strip().lower()
    out: List[MemoryOut] = []
    for m in memories:
        if needle and not (
            needle in m.title.lower()
            or needle in m.description.lower()
            or any(needle in t.lower() for t in m.tags)
        ):
            continue
        if tag and tag not in m.tags:
            continue
        out.append(m)
    return out


def sort_memories(memories: Iterable[MemoryOut], mode: SortMode = SortMode.LATEST) -> List[MemoryOut]:
    items = list(memories)
    mode = SortMode(mode)
    if mode is SortMode.LATEST:
        return sorted(items, key=_created, reverse=True)
    if mode is SortMode.OLDEST:
        return sorted(items, key=_created)
    # Stable: equal like counts keep their cached order.
    return sorted(items, key=lambda m: len(m.likes), reverse=True)


def visible_memories(
    memories: Iterable[MemoryOut],
    *,
    search: Optional[str] = None,
    tag: Optional[str] = None,
    sort: SortMode = SortMode.LATEST,
) -> List[MemoryOut]:
    return sort_memories(filter_memories(memories, search=search, tag=tag), sort)


def all_tags(memories: Iterable[MemoryOut]) -> List[str]:
    return sorted({t for m in memories for t in m.tags})
