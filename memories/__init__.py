"""Memories package.

Contract:
- Canonical persistence in SQLite (MEMORIES_DB_PATH).
- Users and memories are stored as documents; set-valued fields live in JSON columns.
- Every mutation is decided by memories.rules and persisted before it is reported.
- The requester identity is always passed explicitly; there is no ambient request user.
"""
from __future__ import annotations

__version__ = "1.0.0"
