"""
API request and response models for Taskguard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field validation here is structural only (shape, length, character set).
Password strength is NOT checked here -- the session service evaluates it so
the full violation list reaches the client in one response.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from auth.models import UserCredential

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"

# Upper bound on request size only; the strength policy reports anything
# over its own maximum as a violation.
_PASSWORD_FIELD_MAX = 1024


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    username: str = Field(min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=1, max_length=_PASSWORD_FIELD_MAX)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    `identifier` is an email or a username. `email` is accepted as a legacy
    alias for older clients; one of the two is required.
    """

    identifier: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_FIELD_MAX)

    @model_validator(mode="after")
    def require_identifier(self) -> "LoginRequest":
        if not (self.identifier or self.email):
            raise ValueError("Email or username is required")
        return self

    @property
    def login_identifier(self) -> str:
        return self.identifier or self.email or ""


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh."""

    refresh_token: str = Field(min_length=1, max_length=4096)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password."""

    current_password: str = Field(min_length=1, max_length=_PASSWORD_FIELD_MAX)
    new_password: str = Field(min_length=1, max_length=_PASSWORD_FIELD_MAX)


class PasswordCheckRequest(BaseModel):
    """Request body for POST /api/v1/auth/password-strength."""

    password: str = Field(max_length=_PASSWORD_FIELD_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never carries the hash, counters, or tokens."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    username: str
    is_active: bool
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_credential(cls, record: UserCredential) -> "UserResponse":
        return cls(
            id=record.id or "",
            email=record.email,
            username=record.username,
            is_active=record.is_active,
            created_at=record.created_at.isoformat() if record.created_at else None,
            last_login=record.last_login.isoformat() if record.last_login else None,
        )


class SessionResponse(BaseModel):
    """Response for register, login and change-password."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"


class PasswordCheckResponse(BaseModel):
    """Response for POST /api/v1/auth/password-strength."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    score: int
    strength: str
    violations: list[str] = Field(default_factory=list)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    violations: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
