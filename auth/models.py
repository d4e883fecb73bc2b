"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The credential
service owns the state transitions; the store owns persistence; the session
service sequences the two.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class IdentifierKind(str, Enum):
    EMAIL = "email"
    USERNAME = "username"


class TokenClass(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def normalize_identifier(value: str) -> str:
    """Lowercase and trim an email or username. Applied once, at creation and lookup."""
    return value.strip().lower()


@dataclass
class UserCredential:
    """One account's identity and credential state.

    email and username are stored normalized (see normalize_identifier) and
    never change after creation.

    password_hash and current_refresh_token are excluded from repr so a
    record that ends up in a log line or traceback does not carry them.

    version is the optimistic-concurrency counter. UserStore.save() only
    writes when the stored version still matches, then bumps it.
    """

    email: str
    username: str
    password_hash: str = field(repr=False)
    id: str | None = None
    password_changed_at: datetime | None = None
    failed_attempts: int = 0
    locked_until: datetime | None = None
    is_active: bool = True
    current_refresh_token: str | None = field(default=None, repr=False)
    created_at: datetime | None = None
    last_login: datetime | None = None
    version: int = 0


@dataclass(frozen=True)
class TokenClaims:
    """The verified contents of an access or refresh token.

    issued_at and expires_at are integer epoch seconds, the resolution JWT
    carries them in.
    """

    subject: str
    issued_at: int
    expires_at: int
    token_class: TokenClass
    token_id: str


@dataclass(frozen=True)
class SessionResult:
    """What register, login and change_password hand back to the caller."""

    record: UserCredential
    access_token: str
    refresh_token: str
