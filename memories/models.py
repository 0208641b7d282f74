"""
models.py

Domain records used by the rules engine and the content store.

Records are frozen; every state transition returns a new record.
Set-valued fields are tuples that keep insertion order (the order the
document store returns them in) and never hold duplicate ids.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    password_hash: str = field(repr=False)
    profile_image: str = ""
    bio: str = ""
    followers: Tuple[str, ...] = ()
    following: Tuple[str, ...] = ()
    created_at: str = ""

    @property
    def followers_count(self) -> int:
        return len(self.followers)


@dataclass(frozen=True)
class Comment:
    id: str
    text: str
    creator_id: str
    created_at: str


@dataclass(frozen=True)
class Memory:
    id: str
    title: str
    description: str
    creator_id: str
    image: Optional[str] = None
    tags: Tuple[str, ...] = ()
    likes: Tuple[str, ...] = ()
    comments: Tuple[Comment, ...] = ()
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class FollowResult:
    """Both endpoints of a toggled follow edge, to be persisted together."""

    current_user: User
    target_user: User
    followed: bool

    @property
    def message(self) -> str:
        return "User followed" if self.followed else "User unfollowed"
