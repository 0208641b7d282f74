from __future__ import annotations

import sqlite3
from typing import Iterator, Optional

from fastapi import Depends, Header, Request

from . import store
from .config import Settings, load_settings
from .credentials import TokenService
from .errors import NotAuthenticated
from .models import User


def get_settings(request: Request) -> Settings:
    # create_app sets app.state.settings; fall back to the environment.
    state = getattr(getattr(request, "app", None), "state", None)
    settings = getattr(state, "settings", None) if state else None
    return settings or load_settings()


def get_conn(settings: Settings = Depends(get_settings)) -> Iterator[sqlite3.Connection]:
    conn = store.connect(settings.db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.token_secret, ttl_days=settings.token_ttl_days)


def _bearer_token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    scheme, _, token = raw.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise NotAuthenticated("Not authorized, no token")
    return token.strip()


def require_user(
    authorization: Optional[str] = Header(default=None),
    conn: sqlite3.Connection = Depends(get_conn),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """
    Resolve the requesting user from the bearer token.
    The result is handed to handlers explicitly; nothing is stashed on the request.
    """
    user_id = tokens.verify(_bearer_token(authorization))
    if not user_id:
        raise NotAuthenticated("Not authorized, token failed")

    user = store.get_user(conn, user_id)
    if user is None:
        raise NotAuthenticated("Not authorized, user no longer exists")
    return user
