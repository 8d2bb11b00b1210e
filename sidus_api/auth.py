"""Resolve the caller's user id from the upstream auth proxy.

Sessions are handled in front of this service; by the time a request arrives
the proxy has set ``X-User-Id`` (or ``Authorization: Bearer <user id>``).
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """No usable identity on the request."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def resolve_user_id(x_user_id: Optional[str], authorization: Optional[str]) -> str:
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    raise AuthError("unauthorized", "Authentication required")
