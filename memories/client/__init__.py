"""Async client for the Memories API with synchronized feed caches."""
from __future__ import annotations

from .api import MemoriesApiClient
from .feed import FeedCache, FeedState, SortMode, all_tags, filter_memories, sort_memories, visible_memories
from .session import MemoriesSession, Notification

__all__ = [
    "FeedCache",
    "FeedState",
    "MemoriesApiClient",
    "MemoriesSession",
    "Notification",
    "SortMode",
    "all_tags",
    "filter_memories",
    "sort_memories",
    "visible_memories",
]
