"""
auth/dependencies.py -- FastAPI Depends() helpers for the bearer token.

The package manager sends its credential verbatim in the Authorization
header. Some clients (curl, scripts) prefix it with "Bearer "; both forms
yield the same token.

try_get_token() is the soft variant (returns None when absent).
get_token() wraps it and raises AuthError (403) when there is no token.
Authentication and authorization are one step here: a token is only ever
judged by AuthPolicy against a specific crate, so there is no separate 401.

Layer rule: no imports from api/, registry/, storage/, or cache/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from core.errors import AuthError


def try_get_token(request: Request) -> str | None:
    raw = request.headers.get("Authorization", "").strip()
    if raw[:7].lower() == "bearer ":
        raw = raw[7:].strip()
    return raw or None


def get_token(request: Request) -> str:
    """Require a token. Use as a FastAPI dependency:

    @router.get("/protected")
    async def route(token: str = Depends(get_token)): ...
    """
    token = try_get_token(request)
    if token is None:
        raise AuthError("forbidden", verbose_message="missing Authorization header")
    return token
