"""
client/session.py

Client session: authentication state, feed synchronization, notifications.

Rules:
- Every reported API error becomes a dismissable notification.
- NotAuthenticated from the API drops the stored token and user (re-login required).
- A control (e.g. ("like", memory_id)) has at most one action in flight;
  a second submission while pending is ignored. Different controls may overlap.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Set, TypeVar

from ..errors import MemoriesError, NotAuthenticated
from ..schemas import AuthOut, CommentOut, MemoryOut, PopularUserOut, ProfileUserOut, UserOut
from .api import MemoriesApiClient
from .feed import FeedState

logger = logging.getLogger(__name__)

T = TypeVar("T")

_notification_ids = itertools.count(1)


@dataclass(frozen=True)
class Notification:
    id: int
    title: str
    description: str
    variant: str = "default"


class MemoriesSession:
    def __init__(self, api: MemoriesApiClient, *, page_size: int = 10) -> None:
        self.api = api
        self.page_size = page_size
        self.user: Optional[UserOut] = None
        self.profile: Optional[ProfileUserOut] = None
        self.state = FeedState()
        self.notifications: List[Notification] = []
        self._pending: Set[Hashable] = set()

    # ----------------------------
    # Session state
    # ----------------------------

    @property
    def token(self) -> Optional[str]:
        return self.api.token

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def is_pending(self, control: Hashable) -> bool:
        return control in self._pending

    def notify(self, title: str, description: str, *, variant: str = "default") -> Notification:
        n = Notification(id=next(_notification_ids), title=title, description=description, variant=variant)
        self.notifications.append(n)
        return n

    def dismiss(self, notification_id: int) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]

    def _clear_credentials(self) -> None:
        self.api.token = None
        self.user = None

    async def _run(
        self,
        control: Hashable,
        action: Callable[[], Awaitable[T]],
        *,
        failure_title: str,
        reraise: bool = False,
    ) -> Optional[T]:
        if control in self._pending:
            logger.debug("ignoring duplicate submission for %s", control)
            return None

        self._pending.add(control)
        try:
            return await action()
        except MemoriesError as exc:
            logger.warning("%s: %s", failure_title, exc.message)
            if isinstance(exc, NotAuthenticated) and self.api.token:
                self._clear_credentials()
            self.notify(failure_title, exc.message, variant="destructive")
            if reraise:
                raise
            return None
        finally:
            self._pending.discard(control)

    # ----------------------------
    # Auth
    # ----------------------------

    async def load_user(self) -> Optional[UserOut]:
        """
        Restore the signed-in user from a stored token at startup.
        Any failure leaves the session signed out, without a notification.
        """
        if not self.api.token:
            return None
        try:
            self.user = await self.api.get_current_user()
        except MemoriesError as exc:
            logger.info("stored token rejected, continuing signed out: %s", exc.message)
            self._clear_credentials()
        return self.user

    def _signed_in(self, auth: AuthOut, title: str, description: str) -> UserOut:
        self.api.token = auth.token
        self.user = UserOut(**auth.model_dump(exclude={"token"}))
        self.notify(title, description)
        return self.user

    async def login(self, email: str, password: str) -> Optional[UserOut]:
        async def action() -> UserOut:
            auth = await self.api.login(email, password)
            return self._signed_in(auth, "Login successful", f"Welcome back, {auth.username}!")

        return await self._run("login", action, failure_title="Login failed", reraise=True)

    async def register(self, username: str, email: str, password: str) -> Optional[UserOut]:
        async def action() -> UserOut:
            auth = await self.api.register(username, email, password)
            return self._signed_in(auth, "Registration successful", f"Welcome to Memories, {auth.username}!")

        return await self._run("register", action, failure_title="Registration failed", reraise=True)

    def logout(self) -> None:
        self._clear_credentials()
        self.notify("Logged out", "You have been successfully logged out.")

    async def update_profile(self, *, bio: Optional[str] = None, profile_image: Optional[str] = None) -> Optional[UserOut]:
        payload: Dict[str, Any] = {}
        if bio is not None:
            payload["bio"] = bio
        if profile_image is not None:
            payload["profile_image"] = profile_image

        async def action() -> UserOut:
            self.user = await self.api.update_profile(payload)
            self.notify("Profile updated", "Your profile has been successfully updated.")
            return self.user

        return await self._run("update_profile", action, failure_title="Update failed", reraise=True)

    # ----------------------------
    # Feeds
    # ----------------------------

    async def fetch_memories(self, page: int = 1, tag: Optional[str] = None) -> List[MemoryOut]:
        async def action() -> List[MemoryOut]:
            resp = await self.api.get_memories(page=page, limit=self.page_size, tag=tag)
            self.state.load_page(resp.memories, page=resp.current_page, total_pages=resp.total_pages, tag=tag)
            return self.state.feed.items

        result = await self._run("fetch_memories", action, failure_title="Failed to load memories")
        return result if result is not None else self.state.feed.items

    async def load_more(self) -> List[MemoryOut]:
        """Append the next server page to the global feed, if there is one."""
        if not self.state.has_more:
            return self.state.feed.items
        return await self.fetch_memories(self.state.current_page + 1, tag=self.state.tag)

    async def fetch_user_memories(self, username: str) -> List[MemoryOut]:
        async def action() -> List[MemoryOut]:
            resp = await self.api.get_user_profile(username)
            self.profile = resp.user
            self.state.load_profile(resp.memories)
            return self.state.profile_feed.items

        result = await self._run(
            ("profile", username),
            action,
            failure_title="Failed to load user memories",
        )
        return result if result is not None else self.state.profile_feed.items

    async def popular_users(self) -> List[PopularUserOut]:
        result = await self._run(
            "popular_users",
            self.api.get_popular_users,
            failure_title="Failed to load popular users",
        )
        return result or []

    # ----------------------------
    # Mutations
    # ----------------------------

    async def create_memory(
        self,
        *,
        title: str,
        description: str,
        image: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Optional[MemoryOut]:
        payload = {"title": title, "description": description, "image": image, "tags": list(tags or [])}

        async def action() -> MemoryOut:
            memory = await self.api.create_memory(payload)
            self.state.apply_created(memory)
            self.notify("Memory created", "Your memory has been successfully created.")
            return memory

        return await self._run("create_memory", action, failure_title="Failed to create memory", reraise=True)

    async def update_memory(self, memory_id: str, **fields: Any) -> Optional[MemoryOut]:
        payload = {k: v for k, v in fields.items() if k in {"title", "description", "image", "tags"}}

        async def action() -> MemoryOut:
            memory = await self.api.update_memory(memory_id, payload)
            self.state.apply_updated(memory)
            self.notify("Memory updated", "Your memory has been successfully updated.")
            return memory

        return await self._run(("update", memory_id), action, failure_title="Failed to update memory")

    async def delete_memory(self, memory_id: str) -> bool:
        async def action() -> bool:
            await self.api.delete_memory(memory_id)
            self.state.apply_deleted(memory_id)
            self.notify("Memory deleted", "Your memory has been successfully deleted.")
            return True

        return bool(await self._run(("delete", memory_id), action, failure_title="Failed to delete memory"))

    async def like_memory(self, memory_id: str) -> Optional[List[str]]:
        if not self.is_authenticated:
            return None

        async def action() -> List[str]:
            resp = await self.api.like_memory(memory_id)
            self.state.apply_likes(memory_id, resp.likes)
            return resp.likes

        return await self._run(("like", memory_id), action, failure_title="Action failed")

    async def add_comment(self, memory_id: str, text: str) -> Optional[List[CommentOut]]:
        if not self.is_authenticated:
            return None

        async def action() -> List[CommentOut]:
            comments = await self.api.comment_memory(memory_id, text)
            self.state.apply_comments(memory_id, comments)
            return comments

        return await self._run(("comment", memory_id), action, failure_title="Comment failed")

    async def toggle_follow(self, user_id: str) -> Optional[bool]:
        """Follow/unfollow; keeps the viewed profile's follower list in step."""
        if not self.is_authenticated:
            self.notify("Authentication required", "Please log in to follow users.", variant="destructive")
            return None

        async def action() -> bool:
            resp = await self.api.follow_user(user_id)
            me = self.user.id if self.user else None
            if self.profile is not None and self.profile.id == user_id and me:
                followers = [uid for uid in self.profile.followers if uid != me]
                if resp.followed:
                    followers.append(me)
                self.profile = self.profile.model_copy(update={"followers": followers})
            name = self.profile.username if self.profile and self.profile.id == user_id else "this user"
            self.notify(
                "Followed" if resp.followed else "Unfollowed",
                f"You are now following {name}" if resp.followed else f"You are no longer following {name}",
            )
            return resp.followed

        return await self._run(("follow", user_id), action, failure_title="Action failed")
