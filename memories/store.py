"""
store.py

Content store: SQLite substrate for the users and memories collections.

Storage model:
- One row per document. Set- and sequence-valued fields (followers, following,
  tags, likes, comments) are JSON arrays in the row.
- Schema creation is non-destructive (CREATE TABLE IF NOT EXISTS).
- Callers own commits, except save_follow_pair which writes both endpoints
  in one transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import UpstreamUnavailable, ValidationFailed
from .models import Comment, FollowResult, Memory, User

logger = logging.getLogger(__name__)


# ----------------------------
# Connection + schema
# ----------------------------

def connect(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    # FastAPI may resolve a dependency and run the endpoint on different worker threads.
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row
    ensure_schema(conn)
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the users and memories collections if missing (non-destructive)."""
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            profile_image TEXT NOT NULL DEFAULT '',
            bio TEXT NOT NULL DEFAULT '',
            followers_json TEXT NOT NULL DEFAULT '[]',
            following_json TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS memories (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            image TEXT NULL,
            tags_json TEXT NOT NULL DEFAULT '[]',
            creator_id TEXT NOT NULL,
            likes_json TEXT NOT NULL DEFAULT '[]',
            comments_json TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (creator_id) REFERENCES users (id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories (created_at)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_memories_creator ON memories (creator_id, created_at)")

    conn.commit()


# ----------------------------
# Row mapping
# ----------------------------

def _load_list(raw: Optional[str]) -> List[Any]:
    value = json.loads(raw or "[]")
    return value if isinstance(value, list) else []


def _dump(value: Iterable[Any]) -> str:
    return json.dumps(list(value), ensure_ascii=False)


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        profile_image=row["profile_image"],
        bio=row["bio"],
        followers=tuple(str(x) for x in _load_list(row["followers_json"])),
        following=tuple(str(x) for x in _load_list(row["following_json"])),
        created_at=row["created_at"],
    )


def _comment_to_dict(c: Comment) -> Dict[str, Any]:
    return {"id": c.id, "text": c.text, "creator_id": c.creator_id, "created_at": c.created_at}


def _memory_from_row(row: sqlite3.Row) -> Memory:
    comments = tuple(
        Comment(
            id=str(c["id"]),
            text=str(c["text"]),
            creator_id=str(c["creator_id"]),
            created_at=str(c["created_at"]),
        )
        for c in _load_list(row["comments_json"])
    )
    return Memory(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        image=row["image"],
        tags=tuple(str(t) for t in _load_list(row["tags_json"])),
        creator_id=row["creator_id"],
        likes=tuple(str(x) for x in _load_list(row["likes_json"])),
        comments=comments,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ----------------------------
# Users
# ----------------------------

def get_user(conn: sqlite3.Connection, user_id: str) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE id = ? LIMIT 1", (user_id,)).fetchone()
    return _user_from_row(row) if row else None


def get_user_by_username(conn: sqlite3.Connection, username: str) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE username = ? LIMIT 1", (username,)).fetchone()
    return _user_from_row(row) if row else None


def get_user_by_email(conn: sqlite3.Connection, email: str) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE email = ? LIMIT 1", (email,)).fetchone()
    return _user_from_row(row) if row else None


def find_user_conflict(conn: sqlite3.Connection, *, username: str, email: str) -> Optional[User]:
    row = conn.execute(
        "SELECT * FROM users WHERE email = ? OR username = ? ORDER BY rowid LIMIT 1",
        (email, username),
    ).fetchone()
    return _user_from_row(row) if row else None


def get_users_by_ids(conn: sqlite3.Connection, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(f"SELECT * FROM users WHERE id IN ({placeholders})", tuple(ids)).fetchall()
    return {row["id"]: _user_from_row(row) for row in rows}


def list_users(conn: sqlite3.Connection) -> List[User]:
    """All users in insertion order."""
    rows = conn.execute("SELECT * FROM users ORDER BY rowid ASC").fetchall()
    return [_user_from_row(r) for r in rows]


def list_popular_users(conn: sqlite3.Connection, limit: int) -> List[User]:
    """
    Top users by follower count, ties in insertion order.
    Password hashes are not read.
    """
    rows = conn.execute(
        """
        SELECT id, username, email, '' AS password_hash, profile_image, bio,
               followers_json, following_json, created_at
        FROM users
        ORDER BY json_array_length(followers_json) DESC, rowid ASC
        LIMIT ?
        """,
        (max(0, int(limit)),),
    ).fetchall()
    return [_user_from_row(r) for r in rows]


def insert_user(conn: sqlite3.Connection, user: User, *, now: str) -> None:
    try:
        conn.execute(
            """
            INSERT INTO users
              (id, username, email, password_hash, profile_image, bio, followers_json, following_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.id,
                user.username,
                user.email,
                user.password_hash,
                user.profile_image,
                user.bio,
                _dump(user.followers),
                _dump(user.following),
                user.created_at or now,
                now,
            ),
        )
    except sqlite3.IntegrityError as exc:
        # Lost a race with a concurrent registration for the same username/email.
        raise ValidationFailed("Username or email already in use") from exc


def update_user_profile(conn: sqlite3.Connection, user: User, *, now: str) -> None:
    conn.execute(
        "UPDATE users SET bio = ?, profile_image = ?, updated_at = ? WHERE id = ?",
        (user.bio, user.profile_image, now, user.id),
    )


def save_follow_pair(conn: sqlite3.Connection, result: FollowResult, *, now: str) -> None:
    """
    Persist both endpoints of a follow toggle atomically.
    On failure nothing is written and UpstreamUnavailable is raised.
    """
    try:
        with conn:
            conn.execute(
                "UPDATE users SET following_json = ?, updated_at = ? WHERE id = ?",
                (_dump(result.current_user.following), now, result.current_user.id),
            )
            conn.execute(
                "UPDATE users SET followers_json = ?, updated_at = ? WHERE id = ?",
                (_dump(result.target_user.followers), now, result.target_user.id),
            )
    except sqlite3.Error as exc:
        logger.exception(
            "follow pair write rolled back: %s -> %s",
            result.current_user.id,
            result.target_user.id,
        )
        raise UpstreamUnavailable("Could not update follow relation, please retry") from exc


# ----------------------------
# Memories
# ----------------------------

def _tag_clause(tag: Optional[str]) -> Tuple[str, Tuple[Any, ...]]:
    if not tag:
        return "", ()
    return (
        "WHERE EXISTS (SELECT 1 FROM json_each(memories.tags_json) WHERE json_each.value = ?)",
        (tag,),
    )


def get_memory(conn: sqlite3.Connection, memory_id: str) -> Optional[Memory]:
    row = conn.execute("SELECT * FROM memories WHERE id = ? LIMIT 1", (memory_id,)).fetchone()
    return _memory_from_row(row) if row else None


def count_memories(conn: sqlite3.Connection, *, tag: Optional[str] = None) -> int:
    where_sql, params = _tag_clause(tag)
    row = conn.execute(f"SELECT COUNT(*) AS n FROM memories {where_sql}", params).fetchone()
    return int(row["n"])


def list_memories(
    conn: sqlite3.Connection,
    *,
    page: int,
    limit: int,
    tag: Optional[str] = None,
) -> List[Memory]:
    """One page of memories, newest first."""
    where_sql, params = _tag_clause(tag)
    offset = (max(1, int(page)) - 1) * int(limit)
    rows = conn.execute(
        f"""
        SELECT *
        FROM memories
        {where_sql}
        ORDER BY created_at DESC, rowid DESC
        LIMIT ? OFFSET ?
        """,
        params + (int(limit), offset),
    ).fetchall()
    return [_memory_from_row(r) for r in rows]


def list_memories_by_creator(conn: sqlite3.Connection, creator_id: str) -> List[Memory]:
    rows = conn.execute(
        """
        SELECT *
        FROM memories
        WHERE creator_id = ?
        ORDER BY created_at DESC, rowid DESC
        """,
        (creator_id,),
    ).fetchall()
    return [_memory_from_row(r) for r in rows]


def insert_memory(conn: sqlite3.Connection, memory: Memory) -> None:
    conn.execute(
        """
        INSERT INTO memories
          (id, title, description, image, tags_json, creator_id, likes_json, comments_json, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            memory.id,
            memory.title,
            memory.description,
            memory.image,
            _dump(memory.tags),
            memory.creator_id,
            _dump(memory.likes),
            _dump(_comment_to_dict(c) for c in memory.comments),
            memory.created_at,
            memory.updated_at or memory.created_at,
        ),
    )


def update_memory(conn: sqlite3.Connection, memory: Memory) -> None:
    """Write every mutable field; id, creator and created_at are never touched."""
    conn.execute(
        """
        UPDATE memories
        SET title = ?, description = ?, image = ?, tags_json = ?,
            likes_json = ?, comments_json = ?, updated_at = ?
        WHERE id = ?
        """,
        (
            memory.title,
            memory.description,
            memory.image,
            _dump(memory.tags),
            _dump(memory.likes),
            _dump(_comment_to_dict(c) for c in memory.comments),
            memory.updated_at,
            memory.id,
        ),
    )


def delete_memory(conn: sqlite3.Connection, memory_id: str) -> bool:
    cur = conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
    return bool(cur.rowcount and cur.rowcount > 0)
