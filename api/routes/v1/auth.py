"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register           -- create account; returns token pair (201)
  POST /api/v1/auth/login              -- password login; returns token pair, sets cookie
  POST /api/v1/auth/refresh            -- exchange refresh token for a new access token
  GET  /api/v1/auth/me                 -- current user info (requires auth)
  POST /api/v1/auth/logout             -- revoke refresh token, clear cookie (requires auth)
  POST /api/v1/auth/change-password    -- replace password; returns new token pair (requires auth)
  POST /api/v1/auth/password-strength  -- score a candidate password (public)

Security:
  Per-IP rate limits on /login and /register (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT). Per-account lockout lives in the session service.
  Cache-Control: no-store on every response that carries a token.
  Handlers that hash or verify passwords are plain `def` so Starlette runs
  them in its worker thread pool instead of blocking the event loop.

Errors: handlers let AuthError propagate. api/main.py maps it through
api/errors.py, which is where the "wrong identifier" and "wrong password"
cases become one indistinguishable response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AccessTokenResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordCheckRequest,
    PasswordCheckResponse,
    RefreshRequest,
    RegisterRequest,
    SessionResponse,
    UserResponse,
)
from auth import password_policy
from auth.dependencies import extract_token, get_current_user, get_session_service
from auth.errors import TokenInvalid
from auth.models import SessionResult, UserCredential
from auth.service import SessionService
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/register:          public, rate-limited
# - POST /api/v1/auth/login:             public, rate-limited
# - POST /api/v1/auth/refresh:           public -- the refresh token is the credential
# - POST /api/v1/auth/password-strength: public -- used by the sign-up form
# - GET  /api/v1/auth/me:                requires auth (get_current_user)
# - POST /api/v1/auth/logout:            requires auth
# - POST /api/v1/auth/change-password:   requires auth
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)  # must be ABOVE @router so FastAPI introspects the undecorated handler
@router.post("/auth/register", response_model=SessionResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Create an account and return its first access/refresh token pair.

    409 names the clashing identifier (email or username); 422 lists every
    password strength violation at once.
    """
    result = service.register(body.email, body.username, body.password)
    return _session_response(result, status_code=201)


@limiter.limit(login_limit)  # enforced by SlowAPIMiddleware
@router.post("/auth/login", response_model=SessionResponse)
def login(
    request: Request,
    body: LoginRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Authenticate with email-or-username and password.

    Returns the same generic error for an unknown identifier and a wrong
    password to avoid leaking account existence.
    """
    result = service.login(body.login_identifier, body.password)
    return _session_response(result, status_code=200)


@router.post("/auth/refresh", response_model=AccessTokenResponse)
def refresh(
    body: RefreshRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Return a new access token for the account's current refresh token."""
    token = service.refresh(body.refresh_token)
    resp = JSONResponse(status_code=200, content=AccessTokenResponse(access_token=token).model_dump())
    _set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/password-strength", response_model=PasswordCheckResponse)
def password_strength(body: PasswordCheckRequest) -> PasswordCheckResponse:
    """Score a candidate password without storing or logging it."""
    evaluation = password_policy.evaluate(body.password)
    return PasswordCheckResponse(
        valid=evaluation.valid,
        score=evaluation.score,
        strength=evaluation.strength,
        violations=[v.message for v in evaluation.violations],
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: UserCredential = Depends(get_current_user)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    return UserResponse.from_credential(current_user)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, service: SessionService = Depends(get_session_service)) -> JSONResponse:
    """Revoke the refresh token and clear the access cookie."""
    service.logout(_require_token(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.delete_cookie("access_token")
    return resp


@router.post("/auth/change-password", response_model=SessionResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    service: SessionService = Depends(get_session_service),
) -> JSONResponse:
    """Replace the password. Tokens issued before the change stop working."""
    result = service.change_password(_require_token(request), body.current_password, body.new_password)
    return _session_response(result, status_code=200)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_token(request: Request) -> str:
    token = extract_token(request)
    if token is None:
        raise TokenInvalid("missing")
    return token


def _session_response(result: SessionResult, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse(
            user=UserResponse.from_credential(result.record),
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        ).model_dump(),
    )
    _set_auth_cookie(resp, result.access_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _set_auth_cookie(response, token: str) -> None:
    """Write the access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the access token expiry so both expire together.
    """
    settings = get_settings()
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.access_token_expire_seconds,
    )
