from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends

from .. import store
from ..credentials import TokenService, hash_password, verify_password
from ..deps import get_conn, get_token_service, require_user
from ..errors import NotAuthenticated, ValidationFailed
from ..models import User, new_id, utc_now_iso
from ..schemas import AuthOut, LoginRequest, RegisterRequest, UserOut, user_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

DEFAULT_AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={username}"


def _auth_out(user: User, tokens: TokenService) -> AuthOut:
    return AuthOut(**user_out(user).model_dump(), token=tokens.issue(user.id))


@router.post("/register", response_model=AuthOut, status_code=201)
def register(
    body: RegisterRequest,
    conn: sqlite3.Connection = Depends(get_conn),
    tokens: TokenService = Depends(get_token_service),
) -> AuthOut:
    username = body.username.strip()
    email = body.email.strip()
    if not username or not email or not body.password:
        raise ValidationFailed("username, email and password are required")

    existing = store.find_user_conflict(conn, username=username, email=email)
    if existing is not None:
        raise ValidationFailed(
            "Email already in use" if existing.email == email else "Username already in use"
        )

    now = utc_now_iso()
    user = User(
        id=new_id(),
        username=username,
        email=email,
        password_hash=hash_password(body.password),
        profile_image=DEFAULT_AVATAR_URL.format(username=username),
        bio="",
        created_at=now,
    )
    store.insert_user(conn, user, now=now)
    conn.commit()

    logger.info("user registered: %s (%s)", user.username, user.id)
    return _auth_out(user, tokens)


@router.post("/login", response_model=AuthOut)
def login(
    body: LoginRequest,
    conn: sqlite3.Connection = Depends(get_conn),
    tokens: TokenService = Depends(get_token_service),
) -> AuthOut:
    user = store.get_user_by_email(conn, body.email.strip())
    if user is None or not verify_password(body.password, user.password_hash):
        raise NotAuthenticated("Invalid email or password")

    logger.info("user logged in: %s", user.id)
    return _auth_out(user, tokens)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(require_user)) -> UserOut:
    return user_out(current_user)
