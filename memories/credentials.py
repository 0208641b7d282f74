"""
credentials.py

Credential service: password hashing and signed bearer tokens.

Token format: base64url(payload_json) "." base64url(hmac_sha256(payload)).
The payload carries the user id ("sub") and an expiry ("exp", unix seconds).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Optional

PBKDF2_ITERATIONS = 200_000


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


# ----------------------------
# Passwords
# ----------------------------

def hash_password(password: str, *, salt: Optional[bytes] = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${_b64encode(salt)}${_b64encode(digest)}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt_b64, digest_b64 = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False

    try:
        computed = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            _b64decode(salt_b64),
            int(iterations),
        )
    except ValueError:
        return False
    return hmac.compare_digest(_b64encode(computed), digest_b64)


# ----------------------------
# Tokens
# ----------------------------

class TokenService:
    """Issues and verifies opaque bearer tokens bound to a user id."""

    def __init__(self, secret: str, ttl_days: int = 30) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._key = secret.encode("utf-8")
        self.ttl_seconds = int(ttl_days) * 24 * 3600

    def _sign(self, payload_b64: str) -> str:
        mac = hmac.new(self._key, payload_b64.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(mac)

    def issue(self, user_id: str, *, now: Optional[float] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {"sub": user_id, "iat": issued_at, "exp": issued_at + self.ttl_seconds}
        payload_b64 = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{payload_b64}.{self._sign(payload_b64)}"

    def verify(self, token: str, *, now: Optional[float] = None) -> Optional[str]:
        """
        Return the user id bound to the token, or None when the token is
        malformed, forged or expired.
        """
        try:
            payload_b64, signature = token.split(".")
        except (AttributeError, ValueError):
            return None

        if not hmac.compare_digest(self._sign(payload_b64).encode("utf-8"), signature.encode("utf-8")):
            return None

        try:
            payload = json.loads(_b64decode(payload_b64))
        except (ValueError, UnicodeDecodeError):
            return None

        current = now if now is not None else time.time()
        if not isinstance(payload, dict) or int(payload.get("exp") or 0) <= current:
            return None

        sub = payload.get("sub")
        return str(sub) if sub else None
