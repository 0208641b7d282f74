from __future__ import annotations

import logging
import math
import sqlite3
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Query

from .. import rules, store
from ..config import Settings
from ..deps import get_conn, get_settings, require_user
from ..errors import NotFound, ValidationFailed
from ..models import Memory, User, new_id, utc_now_iso
from ..schemas import (
    CommentOut,
    CommentRequest,
    LikesOut,
    MemoryCreateRequest,
    MemoryListOut,
    MemoryOut,
    MemoryUpdateRequest,
    MessageOut,
    comment_out,
    memory_out,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memories", tags=["memories"])

# Keeps (page - 1) * limit inside SQLite's 64-bit OFFSET.
MAX_PAGE = 1_000_000_000


# ----------------------------
# Helpers
# ----------------------------

def _referenced_users(conn: sqlite3.Connection, memories: Iterable[Memory]) -> Dict[str, User]:
    ids = set()
    for m in memories:
        ids.add(m.creator_id)
        ids.update(c.creator_id for c in m.comments)
    return store.get_users_by_ids(conn, ids)


def present_memories(conn: sqlite3.Connection, memories: List[Memory]) -> List[MemoryOut]:
    users = _referenced_users(conn, memories)
    return [memory_out(m, users) for m in memories]


def _load_memory(conn: sqlite3.Connection, memory_id: str) -> Memory:
    memory = store.get_memory(conn, memory_id)
    if memory is None:
        raise NotFound("Memory not found")
    return memory


def _normalize_tag_query(tag: Optional[str]) -> Optional[str]:
    if tag is None:
        return None
    t = tag.strip().lower()
    return t or None


# ----------------------------
# Reads
# ----------------------------

@router.get("", response_model=MemoryListOut)
def list_memories(
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    tag: Optional[str] = Query(default=None, description="Only memories carrying this tag."),
    conn: sqlite3.Connection = Depends(get_conn),
    settings: Settings = Depends(get_settings),
) -> MemoryListOut:
    page_size = int(limit or settings.page_size)
    tag_norm = _normalize_tag_query(tag)

    items = store.list_memories(conn, page=page, limit=page_size, tag=tag_norm)
    total = store.count_memories(conn, tag=tag_norm)

    return MemoryListOut(
        memories=present_memories(conn, items),
        current_page=int(page),
        total_pages=math.ceil(total / page_size),
        total_memories=total,
    )


@router.get("/{memory_id}", response_model=MemoryOut)
def get_memory(
    memory_id: str,
    conn: sqlite3.Connection = Depends(get_conn),
) -> MemoryOut:
    memory = _load_memory(conn, memory_id)
    return present_memories(conn, [memory])[0]


# ----------------------------
# Writes (authenticated)
# ----------------------------

@router.post("", response_model=MemoryOut, status_code=201)
def create_memory(
    body: MemoryCreateRequest,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> MemoryOut:
    title = body.title.strip()
    if not title or not body.description.strip():
        raise ValidationFailed("title and description are required")

    now = utc_now_iso()
    memory = Memory(
        id=new_id(),
        title=title,
        description=body.description.strip(),
        image=body.image or None,
        tags=tuple(rules.normalize_tags(body.tags)),
        creator_id=current_user.id,
        created_at=now,
        updated_at=now,
    )
    store.insert_memory(conn, memory)
    conn.commit()

    logger.info("memory created: %s by %s", memory.id, current_user.id)
    return present_memories(conn, [memory])[0]


@router.put("/{memory_id}", response_model=MemoryOut)
def update_memory(
    memory_id: str,
    body: MemoryUpdateRequest,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> MemoryOut:
    memory = _load_memory(conn, memory_id)
    rules.authorize_mutation(current_user.id, memory)

    updated = rules.apply_memory_update(
        memory,
        title=body.title,
        description=body.description,
        image=body.image,
        tags=body.tags,
    )
    store.update_memory(conn, updated)
    conn.commit()

    logger.info("memory updated: %s by %s", memory_id, current_user.id)
    return present_memories(conn, [updated])[0]


@router.delete("/{memory_id}", response_model=MessageOut)
def delete_memory(
    memory_id: str,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> MessageOut:
    memory = _load_memory(conn, memory_id)
    rules.authorize_mutation(current_user.id, memory)

    if not store.delete_memory(conn, memory_id):
        raise NotFound("Memory not found")
    conn.commit()

    logger.info("memory deleted: %s by %s", memory_id, current_user.id)
    return MessageOut(message="Memory deleted successfully")


@router.put("/{memory_id}/like", response_model=LikesOut)
def like_memory(
    memory_id: str,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> LikesOut:
    memory = _load_memory(conn, memory_id)
    updated = rules.toggle_like(memory, current_user.id)
    store.update_memory(conn, updated)
    conn.commit()

    return LikesOut(likes=list(updated.likes))


@router.post("/{memory_id}/comment", response_model=List[CommentOut])
def comment_memory(
    memory_id: str,
    body: CommentRequest,
    current_user: User = Depends(require_user),
    conn: sqlite3.Connection = Depends(get_conn),
) -> List[CommentOut]:
    memory = _load_memory(conn, memory_id)
    updated = rules.append_comment(memory, current_user.id, body.text)
    store.update_memory(conn, updated)
    conn.commit()

    users = _referenced_users(conn, [updated])
    return [comment_out(c, users) for c in updated.comments]
