"""
auth/tokens.py -- Access and refresh JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Two signing contexts, one per token class,
       each with its own secret and expiry. A token signed for one class
       fails signature verification in the other. The `typ` claim is checked
       as well, so the classes stay apart even if an operator misconfigures
       both secrets to the same value.

  Claims: sub (account id), iss, aud, iat, exp, jti, typ. jti is random per
       token, so two tokens issued for the same account in the same second
       are never byte-identical -- refresh-token rotation relies on that.

  Time: iat/exp come from the injected Clock and expiry is checked against
       the same Clock, not the wall clock jose would use. jose's own exp check
       is disabled for that reason.

  Failures are distinct exceptions: TokenInvalid(reason=malformed |
       bad_signature | claims) and TokenExpired. Callers choose between
       "log in again" and "refresh silently" on that distinction.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.errors import TokenExpired, TokenInvalid
from auth.models import TokenClaims, TokenClass
from core.clock import Clock, SystemClock

logger = logging.getLogger("taskguard.auth")

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SigningContext:
    """Secret, algorithm and lifetime for one token class."""

    token_class: TokenClass
    secret: str
    expires_in: timedelta
    algorithm: str = _ALGORITHM


class TokenIssuer:
    """Signs and verifies the two token classes.

    Usage:
        issuer = TokenIssuer.from_settings(get_settings(), clock)
        token = issuer.issue_access(user.id)
        claims = issuer.verify_access(token)   # raises TokenInvalid / TokenExpired
    """

    def __init__(
        self,
        access: SigningContext,
        refresh: SigningContext,
        issuer: str,
        audience: str,
        clock: Clock | None = None,
    ) -> None:
        if access.secret == refresh.secret:
            logger.warning("Access and refresh tokens share a secret; relying on the typ claim alone")
        self._contexts = {TokenClass.ACCESS: access, TokenClass.REFRESH: refresh}
        self.issuer = issuer
        self.audience = audience
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(cls, settings, clock: Clock | None = None) -> "TokenIssuer":
        return cls(
            access=SigningContext(
                TokenClass.ACCESS,
                settings.access_token_secret,
                timedelta(seconds=settings.access_token_expire_seconds),
            ),
            refresh=SigningContext(
                TokenClass.REFRESH,
                settings.refresh_token_secret,
                timedelta(seconds=settings.refresh_token_expire_seconds),
            ),
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access(self, subject: str) -> str:
        return self._issue(TokenClass.ACCESS, subject)

    def issue_refresh(self, subject: str) -> str:
        return self._issue(TokenClass.REFRESH, subject)

    def _issue(self, token_class: TokenClass, subject: str) -> str:
        ctx = self._contexts[token_class]
        issued_at = int(self.clock.now().timestamp())
        payload = {
            "sub": str(subject),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + int(ctx.expires_in.total_seconds()),
            "jti": secrets.token_hex(16),
            "typ": token_class.value,
        }
        return jwt.encode(payload, ctx.secret, algorithm=ctx.algorithm)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(TokenClass.ACCESS, token)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(TokenClass.REFRESH, token)

    def _verify(self, token_class: TokenClass, token: str) -> TokenClaims:
        if not isinstance(token, str) or not token:
            raise TokenInvalid("malformed")
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenInvalid("malformed") from exc

        ctx = self._contexts[token_class]
        try:
            payload = jwt.decode(
                token,
                ctx.secret,
                algorithms=[ctx.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_exp": False},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTClaimsError as exc:
            raise TokenInvalid("claims") from exc
        except JWTError as exc:
            raise TokenInvalid("bad_signature") from exc

        if payload.get("typ") != token_class.value:
            raise TokenInvalid("claims")
        subject = payload.get("sub")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not subject or not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise TokenInvalid("claims")

        if int(self.clock.now().timestamp()) >= expires_at:
            raise TokenExpired()

        return TokenClaims(
            subject=subject,
            issued_at=issued_at,
            expires_at=expires_at,
            token_class=token_class,
            token_id=payload.get("jti", ""),
        )
