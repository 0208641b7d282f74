from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from typing import List

from fastapi import APIRouter, Depends

from .. import rules, store
from ..deps import get_conn, require_user
from ..errors import NotFound, SelfFollowRejected
from ..models import User, utc_now_iso
from ..schemas import (
    FollowOut,
    PopularUserOut,
    ProfileOut,
    ProfileUpdateRequest,
    UserOut,
    popular_user_out,
    profile_user_out,
    user_out,
)
from .memories import present_memories

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/popular", response_model=List[PopularUserOut])
def popular_users(conn: sqlite3.Connection = Depends(get_conn)) -> List[PopularUserOut]:
    ranked = store.list_popular_users(conn, rules.POPULAR_USERS_LIMIT)
    return [popular_user_out(u) for u in ranked]


@router.get("/profile/{username}", response_model=ProfileOut)
def get_profile(
    username: str,
    conn: sqlite3.Connection = Depends(get_conn),
) -> ProfileOut:
    user = store.get_user_by_username(conn, username)
    if user is None:
        raise NotFound("User not found")

    memories = store.list_memories_by_creator(conn, user.id)
    return ProfileOut(user=profile_user_out(user), memories=present_memories(conn, memories))


@router.put("/profile", response_model=UserOut)
def update_profile(
    body: ProfileUpdateRequest,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> UserOut:
    # Omitted fields are left alone; an explicit empty string clears the field.
    updated = replace(
        current_user,
        bio=body.bio if body.bio is not None else current_user.bio,
        profile_image=(
            body.profile_image if body.profile_image is not None else current_user.profile_image
        ),
    )
    store.update_user_profile(conn, updated, now=utc_now_iso())
    conn.commit()

    logger.info("profile updated: %s", current_user.id)
    return user_out(updated)


@router.put("/follow/{user_id}", response_model=FollowOut)
def follow_user(
    user_id: str,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> FollowOut:
    if user_id == current_user.id:
        raise SelfFollowRejected("You cannot follow yourself")

    target = store.get_user(conn, user_id)
    if target is None:
        raise NotFound("User not found")

    result = rules.toggle_follow(current_user, target)
    store.save_follow_pair(conn, result, now=utc_now_iso())

    logger.info("%s: %s -> %s", result.message, current_user.id, target.id)
    return FollowOut(
        following=list(result.current_user.following),
        followed=result.followed,
        message=result.message,
    )
