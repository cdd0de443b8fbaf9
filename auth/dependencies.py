"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an Authorization: Bearer <token> header carrying
a JWT from POST /api/v1/auth/login. The token's user_id is re-resolved
against the store on every request, so a deleted user stops working
immediately.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Organization-level authorization (active membership, admin flag) is NOT
decided here. It is enforced inside vault/store.py queries.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.tokens import decode_access_token
from vault.models import User


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User, or None. Never raises for bad credentials."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_access_token(auth_header[7:])
    if payload is None:
        return None
    return request.app.state.store.get_by_id(payload["user_id"])


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
