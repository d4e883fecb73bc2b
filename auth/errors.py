"""
auth/errors.py -- Typed outcomes of the authentication core.

Every expected, caller-recoverable failure is a subclass of AuthError with a
stable machine-readable `code`. The session service raises them; the HTTP
adapter (api/errors.py) maps each to a public status and message. Anything
that is not an AuthError is a genuine fault and surfaces as a 500.

InvalidCredentials keeps an internal `reason` ("unknown_identifier" or
"wrong_password") for logging and tests. The public mapping ignores it, so
callers cannot tell which half of the credential pair was wrong.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.password_policy import Violation


class AuthError(Exception):
    """Base class for expected authentication outcomes."""

    code = "auth_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationFailed(AuthError):
    code = "validation_failed"

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class IdentifierTaken(AuthError):
    code = "identifier_taken"

    def __init__(self, which: str) -> None:
        self.which = which
        super().__init__(f"{which} is already registered")


class InvalidCredentials(AuthError):
    code = "invalid_credentials"

    def __init__(self, reason: str = "wrong_password") -> None:
        self.reason = reason
        super().__init__(f"invalid credentials ({reason})")


class AccountLocked(AuthError):
    code = "account_locked"

    def __init__(self, until: datetime | None) -> None:
        self.until = until
        super().__init__(f"account locked until {until.isoformat() if until else 'unknown'}")


class AccountInactive(AuthError):
    code = "account_inactive"


class TokenInvalid(AuthError):
    """Malformed token, bad signature, or claims that do not belong here.

    reason is one of "missing", "malformed", "bad_signature", "claims",
    "unknown_subject".
    """

    code = "token_invalid"

    def __init__(self, reason: str = "malformed") -> None:
        self.reason = reason
        super().__init__(f"token invalid ({reason})")


class TokenExpired(AuthError):
    code = "token_expired"


class SessionInvalidated(AuthError):
    code = "session_invalidated"


class RefreshTokenMismatch(AuthError):
    code = "refresh_token_mismatch"


# ---------------------------------------------------------------------------
# Infrastructure outcomes
# ---------------------------------------------------------------------------


class StoreConflict(Exception):
    """Raised by the record store when an optimistic-concurrency check fails."""


class DuplicateIdentifier(Exception):
    """Raised by the record store when create() hits an existing email or username."""


class AuthInternalError(Exception):
    """A fault the core cannot turn into a typed outcome (e.g. repeated store conflicts)."""
