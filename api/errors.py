"""
api/errors.py -- Public face of the auth core's typed outcomes.

The core keeps fine-grained internal kinds (InvalidCredentials remembers
whether the identifier or the password was wrong; TokenInvalid remembers
whether the token was malformed or forged). This module collapses them into
what a client is allowed to see: one status, one stable code, one message.

Adding an AuthError subclass without a row here falls back to 400 with the
class's own code, which is safe but almost certainly not what you want.
"""

from __future__ import annotations

from typing import Optional

from api.models import ErrorDetail, ErrorResponse
from auth.errors import (
    AccountInactive,
    AccountLocked,
    AuthError,
    IdentifierTaken,
    InvalidCredentials,
    RefreshTokenMismatch,
    SessionInvalidated,
    TokenExpired,
    TokenInvalid,
    ValidationFailed,
)

# (status, code, message). code/message are what clients see.
_PUBLIC: dict[type[AuthError], tuple[int, str, str]] = {
    ValidationFailed: (422, "weak_password", "Password does not meet the strength requirements."),
    IdentifierTaken: (409, "conflict", "That identifier is already registered."),
    InvalidCredentials: (401, "bad_credentials", "Invalid credentials."),
    AccountLocked: (
        403,
        "account_locked",
        "Account is temporarily locked due to too many failed login attempts. Please try again later.",
    ),
    AccountInactive: (403, "account_inactive", "Your account has been deactivated. Please contact support."),
    TokenInvalid: (401, "token_invalid", "Invalid token. Please login again."),
    TokenExpired: (401, "token_expired", "Token expired."),
    SessionInvalidated: (401, "session_invalidated", "Password was recently changed. Please login again."),
    RefreshTokenMismatch: (401, "refresh_token_invalid", "Invalid refresh token."),
}


def to_public(exc: AuthError) -> tuple[int, ErrorResponse]:
    """Map an AuthError to (status_code, ErrorResponse) without leaking internal detail."""
    status, code, message = _PUBLIC.get(type(exc), (400, exc.code, "Request could not be completed."))
    detail: Optional[str] = None
    violations: list[str] = []

    if isinstance(exc, IdentifierTaken):
        # Registration is the one place the caller is told which identifier
        # clashed; they supplied both and need to know which to change.
        message = "User already exists with this email" if exc.which == "email" else "Username is already taken"
    elif isinstance(exc, ValidationFailed):
        violations = [v.message for v in exc.violations]
    elif isinstance(exc, AccountLocked) and exc.until is not None:
        detail = exc.until.isoformat()

    return status, ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail, violations=violations))
