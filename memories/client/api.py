from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..errors import UpstreamUnavailable, error_from_response
from ..schemas import (
    AuthOut,
    CommentOut,
    FollowOut,
    LikesOut,
    MemoryListOut,
    MemoryOut,
    MessageOut,
    PopularUserOut,
    ProfileOut,
    UserOut,
)


class MemoriesApiClient:
    """
    Async client for the Memories REST API.

    Errors come back as the same typed exceptions the server raises
    (memories.errors); transport failures become UpstreamUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = self.base_url + path
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_body,
                )
            except httpx.RequestError as exc:
                raise UpstreamUnavailable(f"Request error talking to Memories API: {exc}") from exc

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except Exception:
                body = resp.text
            raise error_from_response(resp.status_code, body)

        if not resp.content:
            return None
        return resp.json()

    # ----------------------------
    # Auth
    # ----------------------------

    async def register(self, username: str, email: str, password: str) -> AuthOut:
        data = await self._request(
            "POST",
            "/auth/register",
            json_body={"username": username, "email": email, "password": password},
        )
        return AuthOut.model_validate(data)

    async def login(self, email: str, password: str) -> AuthOut:
        data = await self._request("POST", "/auth/login", json_body={"email": email, "password": password})
        return AuthOut.model_validate(data)

    async def get_current_user(self) -> UserOut:
        return UserOut.model_validate(await self._request("GET", "/auth/me"))

    # ----------------------------
    # Memories
    # ----------------------------

    async def get_memories(self, page: int = 1, limit: int = 10, tag: Optional[str] = None) -> MemoryListOut:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if tag:
            params["tag"] = tag
        return MemoryListOut.model_validate(await self._request("GET", "/memories", params=params))

    async def get_memory(self, memory_id: str) -> MemoryOut:
        return MemoryOut.model_validate(await self._request("GET", f"/memories/{memory_id}"))

    async def create_memory(self, payload: Dict[str, Any]) -> MemoryOut:
        return MemoryOut.model_validate(await self._request("POST", "/memories", json_body=payload))

    async def update_memory(self, memory_id: str, payload: Dict[str, Any]) -> MemoryOut:
        data = await self._request("PUT", f"/memories/{memory_id}", json_body=payload)
        return MemoryOut.model_validate(data)

    async def delete_memory(self, memory_id: str) -> MessageOut:
        return MessageOut.model_validate(await self._request("DELETE", f"/memories/{memory_id}"))

    async def like_memory(self, memory_id: str) -> LikesOut:
        return LikesOut.model_validate(await self._request("PUT", f"/memories/{memory_id}/like"))

    async def comment_memory(self, memory_id: str, text: str) -> List[CommentOut]:
        data = await self._request("POST", f"/memories/{memory_id}/comment", json_body={"text": text})
        return [CommentOut.model_validate(c) for c in data or []]

    # ----------------------------
    # Users
    # ----------------------------

    async def get_user_profile(self, username: str) -> ProfileOut:
        return ProfileOut.model_validate(await self._request("GET", f"/users/profile/{username}"))

    async def update_profile(self, payload: Dict[str, Any]) -> UserOut:
        return UserOut.model_validate(await self._request("PUT", "/users/profile", json_body=payload))

    async def follow_user(self, user_id: str) -> FollowOut:
        return FollowOut.model_validate(await self._request("PUT", f"/users/follow/{user_id}"))

    async def get_popular_users(self) -> List[PopularUserOut]:
        data = await self._request("GET", "/users/popular")
        return [PopularUserOut.model_validate(u) for u in data or []]
