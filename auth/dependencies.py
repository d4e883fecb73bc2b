"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "access_token" cookie -- browser clients that prefer httpOnly cookies.

get_current_user() hands the token to SessionService.authenticate() and lets
its typed AuthError propagate; the app-level exception handler in api/main.py
maps it to the public status and message. The request pipeline decides what
happens next, this module only resolves "who is calling".

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import TokenInvalid
from auth.models import UserCredential
from auth.service import SessionService


def get_session_service(request: Request) -> SessionService:
    """Return the SessionService wired into app.state by the lifespan."""
    return request.app.state.session_service


def extract_token(request: Request) -> str | None:
    """Return the bearer token from the Authorization header or cookie, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get("access_token") or None


def get_current_user(request: Request) -> UserCredential:
    """Require authentication. Raises an AuthError if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: UserCredential = Depends(get_current_user)): ...
    """
    token = extract_token(request)
    if token is None:
        raise TokenInvalid("missing")
    return get_session_service(request).authenticate(token)
