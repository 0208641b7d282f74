"""
rules.py

Social graph & ownership rules.

Contract:
- Pure decisions. No I/O, no connection handling, no request state.
- The requester identity is always an explicit argument.
- Every operation returns new records; callers persist them before reporting success.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .errors import EmptyComment, NotAuthorized, SelfFollowRejected
from .models import Comment, FollowResult, Memory, User, new_id, utc_now_iso

POPULAR_USERS_LIMIT = 5


# ----------------------------
# Ownership
# ----------------------------

def authorize_mutation(requester_id: str, memory: Memory) -> None:
    """Only the creator may update or delete a memory."""
    if memory.creator_id != requester_id:
        raise NotAuthorized("User not authorized")


# ----------------------------
# Tags
# ----------------------------

def normalize_tags(raw_tags: Optional[Iterable[str]]) -> List[str]:
    """
    Trim and lowercase each tag. Duplicates are kept as given.
    """
    if not raw_tags:
        return []
    return [str(t).strip().lower() for t in raw_tags]


# ----------------------------
# Memory content
# ----------------------------

def apply_memory_update(
    memory: Memory,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    image: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
) -> Memory:
    """
    Partial update. Empty title/description/image keep the stored value;
    tags replace whenever supplied (an empty list clears them).
    """
    return replace(
        memory,
        title=(title.strip() if title and title.strip() else memory.title),
        description=(description.strip() if description and description.strip() else memory.description),
        image=image or memory.image,
        tags=tuple(normalize_tags(tags)) if tags is not None else memory.tags,
        updated_at=utc_now_iso(),
    )


def toggle_like(memory: Memory, user_id: str) -> Memory:
    """
    Flip user_id's membership in the like set.

    This is a toggle, so two calls by the same user cancel out.
    """
    if user_id in memory.likes:
        likes = tuple(uid for uid in memory.likes if uid != user_id)
    else:
        likes = memory.likes + (user_id,)
    return replace(memory, likes=likes, updated_at=utc_now_iso())


def append_comment(memory: Memory, author_id: str, text: Optional[str]) -> Memory:
    """Prepend a new comment; comments are kept newest-first."""
    body = (text or "").strip()
    if not body:
        raise EmptyComment("Comment text is required")

    comment = Comment(
        id=new_id(),
        text=body,
        creator_id=author_id,
        created_at=utc_now_iso(),
    )
    return replace(memory, comments=(comment,) + memory.comments, updated_at=utc_now_iso())


# ----------------------------
# Follow graph
# ----------------------------

def is_following(current_user: User, target_id: str) -> bool:
    return target_id in current_user.following


def toggle_follow(current_user: User, target_user: User) -> FollowResult:
    """
    Toggle the current_user -> target_user edge on both endpoints.

    Following and followers are duals, so the two returned users must be
    written together.
    """
    if current_user.id == target_user.id:
        raise SelfFollowRejected("You cannot follow yourself")

    if is_following(current_user, target_user.id):
        following = tuple(uid for uid in current_user.following if uid != target_user.id)
        followers = tuple(uid for uid in target_user.followers if uid != current_user.id)
        followed = False
    else:
        following = current_user.following + (target_user.id,)
        followers = target_user.followers
        if current_user.id not in followers:
            followers = followers + (current_user.id,)
        followed = True

    return FollowResult(
        current_user=replace(current_user, following=following),
        target_user=replace(target_user, followers=followers),
        followed=followed,
    )


def rank_popular(users: Iterable[User], limit: int = POPULAR_USERS_LIMIT) -> List[User]:
    """
    Users ordered by follower count, highest first.

    Input is expected in store insertion order; the sort is stable, so equal
    follower counts keep that order.
    """
    ranked = sorted(users, key=lambda u: u.followers_count, reverse=True)
    return ranked[: max(0, int(limit))]
