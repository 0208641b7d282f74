from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .models import Comment, Memory, User


# ----------------------------
# Request models
# ----------------------------

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class MemoryCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class MemoryUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    tags: Optional[List[str]] = None


class CommentRequest(BaseModel):
    # Emptiness is a domain rule (EmptyComment), not a schema rule.
    text: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    bio: Optional[str] = None
    profile_image: Optional[str] = None


# ----------------------------
# Response models
# ----------------------------

class CreatorOut(BaseModel):
    id: str
    username: Optional[str] = None
    profile_image: Optional[str] = None


class CommentOut(BaseModel):
    id: str
    text: str
    creator: CreatorOut
    created_at: str


class MemoryOut(BaseModel):
    id: str
    title: str
    description: str
    image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    likes: List[str] = Field(default_factory=list)
    comments: List[CommentOut] = Field(default_factory=list)
    creator: CreatorOut
    created_at: str
    updated_at: Optional[str] = None


class MemoryListOut(BaseModel):
    memories: List[MemoryOut]
    current_page: int
    total_pages: int
    total_memories: int


class LikesOut(BaseModel):
    likes: List[str]


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    profile_image: str = ""
    bio: str = ""


class AuthOut(UserOut):
    token: str


class ProfileUserOut(UserOut):
    followers: List[str] = Field(default_factory=list)
    following: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None


class ProfileOut(BaseModel):
    user: ProfileUserOut
    memories: List[MemoryOut]


class FollowOut(BaseModel):
    following: List[str]
    followed: bool
    message: str


class PopularUserOut(BaseModel):
    id: str
    username: str
    profile_image: str = ""
    bio: str = ""
    followers_count: int


class MessageOut(BaseModel):
    status: Literal["ok"] = "ok"
    message: str


# ----------------------------
# Presenters (domain -> response)
# ----------------------------

def creator_out(user_id: str, users: Dict[str, User]) -> CreatorOut:
    u = users.get(user_id)
    if u is None:
        return CreatorOut(id=user_id)
    return CreatorOut(id=u.id, username=u.username, profile_image=u.profile_image)


def comment_out(comment: Comment, users: Dict[str, User]) -> CommentOut:
    return CommentOut(
        id=comment.id,
        text=comment.text,
        creator=creator_out(comment.creator_id, users),
        created_at=comment.created_at,
    )


def memory_out(memory: Memory, users: Dict[str, User]) -> MemoryOut:
    return MemoryOut(
        id=memory.id,
        title=memory.title,
        description=memory.description,
        image=memory.image,
        tags=list(memory.tags),
        likes=list(memory.likes),
        comments=[comment_out(c, users) for c in memory.comments],
        creator=creator_out(memory.creator_id, users),
        created_at=memory.created_at,
        updated_at=memory.updated_at or None,
    )


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        profile_image=user.profile_image,
        bio=user.bio,
    )


def profile_user_out(user: User) -> ProfileUserOut:
    return ProfileUserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        profile_image=user.profile_image,
        bio=user.bio,
        followers=list(user.followers),
        following=list(user.following),
        created_at=user.created_at or None,
    )


def popular_user_out(user: User) -> PopularUserOut:
    return PopularUserOut(
        id=user.id,
        username=user.username,
        profile_image=user.profile_image,
        bio=user.bio,
        followers_count=user.followers_count,
    )
