from __future__ import annotations

from typing import Any, Dict, Optional, Type


class MemoriesError(Exception):
    """Base for every error surfaced to an API caller."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": self.code}


class NotAuthenticated(MemoriesError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Not authorized, no valid token"


class NotAuthorized(MemoriesError):
    status_code = 403
    code = "NOT_AUTHORIZED"
    default_message = "User not authorized"


class NotFound(MemoriesError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class ValidationFailed(MemoriesError):
    status_code = 400
    code = "VALIDATION_FAILED"
    default_message = "Invalid request"


class EmptyComment(ValidationFailed):
    code = "EMPTY_COMMENT"
    default_message = "Comment text is required"


class SelfFollowRejected(MemoriesError):
    status_code = 400
    code = "SELF_FOLLOW_REJECTED"
    default_message = "You cannot follow yourself"


class UpstreamUnavailable(MemoriesError):
    status_code = 503
    code = "UPSTREAM_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


_BY_CODE: Dict[str, Type[MemoriesError]] = {
    cls.code: cls
    for cls in (
        NotAuthenticated,
        NotAuthorized,
        NotFound,
        ValidationFailed,
        EmptyComment,
        SelfFollowRejected,
        UpstreamUnavailable,
    )
}

_BY_STATUS: Dict[int, Type[MemoriesError]] = {
    401: NotAuthenticated,
    403: NotAuthorized,
    404: NotFound,
    400: ValidationFailed,
    422: ValidationFailed,
    502: UpstreamUnavailable,
    503: UpstreamUnavailable,
    504: UpstreamUnavailable,
}


def error_from_response(status_code: int, body: Any) -> MemoriesError:
    """
    Rebuild the typed error from an API error response.
    Unknown codes fall back to the status mapping, then to MemoriesError.
    """
    message: Optional[str] = None
    code: Optional[str] = None
    if isinstance(body, dict):
        detail = body.get("detail")
        message = detail if isinstance(detail, str) else None
        code = body.get("error")
    elif isinstance(body, str) and body:
        message = body

    cls = _BY_CODE.get(code or "") or _BY_STATUS.get(int(status_code))
    if cls is None:
        err = MemoriesError(message or f"Unexpected response status {status_code}")
        err.status_code = int(status_code)
        return err
    return cls(message)
