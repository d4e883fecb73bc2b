"""
auth/service.py -- Registration, login, refresh and per-request authentication.

SessionService is the only component that sequences several side effects
(check, verify, count, persist, issue). Everything it depends on is handed
to the constructor -- record store, clock, credential transitions, token
issuer -- so there is no process-wide auth state and tests can pin time.

Ordering rules worth knowing before editing login():
  - The lockout check runs BEFORE the password comparison. A locked account
    does not learn whether the password it just tried was right.
  - An unknown identifier still pays for one bcrypt comparison (against the
    dummy hash) and fails with the same InvalidCredentials as a wrong
    password. Only a wrong password against a found account counts toward
    lockout.
  - is_active is checked after the password matches, so a deactivated
    account is only revealed to someone who knows its password.

Per-account writes go through _mutate(): load, apply a pure transition,
save with the loaded version. On StoreConflict the record is reloaded and
the transition reapplied once; a second conflict is a fault. A transition
may raise an AuthError when the reloaded record no longer permits it (the
login success path re-checks lock, active flag and hash this way), and
_mutate lets it propagate without writing.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import dataclasses
import hmac
import logging
import uuid
from collections.abc import Callable
from datetime import timedelta

from auth import password_policy
from auth.credentials import CredentialStore
from auth.errors import (
    AccountInactive,
    AccountLocked,
    AuthInternalError,
    DuplicateIdentifier,
    IdentifierTaken,
    InvalidCredentials,
    RefreshTokenMismatch,
    SessionInvalidated,
    StoreConflict,
    TokenInvalid,
    ValidationFailed,
)
from auth.models import IdentifierKind, SessionResult, UserCredential, normalize_identifier
from auth.store import RecordStore
from auth.tokens import TokenIssuer
from core.clock import Clock, SystemClock

logger = logging.getLogger("taskguard.auth")

Transition = Callable[[UserCredential], UserCredential]


class SessionService:
    """Orchestrates the credential store, token issuer and record store.

    Usage:
        service = SessionService.from_settings(settings, store)
        result = service.register("alice@x.com", "alice", "Tr0ub4dor&3")
        user = service.authenticate(result.access_token)
    """

    def __init__(
        self,
        store: RecordStore,
        credentials: CredentialStore,
        issuer: TokenIssuer,
        clock: Clock | None = None,
        evaluate_password: Callable[[str], password_policy.PasswordEvaluation] = password_policy.evaluate,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.issuer = issuer
        self.clock = clock or SystemClock()
        self.evaluate_password = evaluate_password

    @classmethod
    def from_settings(cls, settings, store: RecordStore, clock: Clock | None = None) -> "SessionService":
        clock = clock or SystemClock()
        credentials = CredentialStore(
            rounds=settings.bcrypt_rounds,
            lockout_threshold=settings.lockout_threshold,
            lockout_duration=timedelta(seconds=settings.lockout_seconds),
        )
        return cls(store, credentials, TokenIssuer.from_settings(settings, clock), clock)

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, email: str, username: str, password: str) -> SessionResult:
        """Create an account and open its first session.

        Raises IdentifierTaken (email is checked before username) or
        ValidationFailed carrying every policy violation.
        """
        email = normalize_identifier(email)
        username = normalize_identifier(username)
        self._ensure_available(email, username)

        evaluation = self.evaluate_password(password)
        if not evaluation.valid:
            raise ValidationFailed(evaluation.violations)

        # Tokens are issued against a pre-assigned id so the record goes in with
        # its refresh token in one insert.
        user_id = uuid.uuid4().hex
        access_token = self.issuer.issue_access(user_id)
        refresh_token = self.issuer.issue_refresh(user_id)
        record = UserCredential(
            id=user_id,
            email=email,
            username=username,
            password_hash=self.credentials.hash(password),
            current_refresh_token=refresh_token,
            created_at=self.clock.now(),
        )
        try:
            record = self.store.create(record)
        except DuplicateIdentifier as exc:
            # Lost a race with a concurrent registration for the same identifier.
            self._ensure_available(email, username)
            raise AuthInternalError("user insert failed") from exc

        logger.info("Registered user %s", record.id)
        return SessionResult(record, access_token, refresh_token)

    def _ensure_available(self, email: str, username: str) -> None:
        if self.store.exists_by_identifier(IdentifierKind.EMAIL, email):
            raise IdentifierTaken(IdentifierKind.EMAIL.value)
        if self.store.exists_by_identifier(IdentifierKind.USERNAME, username):
            raise IdentifierTaken(IdentifierKind.USERNAME.value)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: str) -> SessionResult:
        record = self.store.find_by_identifier(identifier)
        if record is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.credentials.verify_dummy(password)
            raise InvalidCredentials("unknown_identifier")

        now = self.clock.now()
        if self.credentials.is_locked(record, now):
            logger.info("Login refused for locked user %s", record.id)
            raise AccountLocked(record.locked_until)

        if not self.credentials.verify(password, record.password_hash):
            record = self._mutate(record, lambda r: self.credentials.record_failure(r, now))
            if self.credentials.is_locked(record, now):
                logger.warning(
                    "User %s locked until %s after %d failed attempts",
                    record.id,
                    record.locked_until.isoformat(),
                    record.failed_attempts,
                )
            else:
                logger.info("Failed login for user %s (%d attempts)", record.id, record.failed_attempts)
            raise InvalidCredentials("wrong_password")

        if not record.is_active:
            raise AccountInactive()

        access_token = self.issuer.issue_access(record.id)
        refresh_token = self.issuer.issue_refresh(record.id)

        verified_hash = record.password_hash

        def succeed(r: UserCredential) -> UserCredential:
            # On a conflict retry r is a fresh load; a competing request may
            # have locked, deactivated or re-keyed the account in between.
            if self.credentials.is_locked(r, now):
                raise AccountLocked(r.locked_until)
            if not r.is_active:
                raise AccountInactive()
            if r.password_hash != verified_hash:
                raise InvalidCredentials("wrong_password")
            r = self.credentials.reset_failures(r)
            return dataclasses.replace(r, last_login=now, current_refresh_token=refresh_token)

        record = self._mutate(record, succeed)
        logger.info("User %s logged in", record.id)
        return SessionResult(record, access_token, refresh_token)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> str:
        """Exchange the account's current refresh token for a new access token.

        The refresh token itself is not rotated here; it stays valid until the
        next login, password change or logout replaces it.
        """
        claims = self.issuer.verify_refresh(refresh_token)
        record = self.store.find_by_id(claims.subject)
        if record is None:
            raise TokenInvalid("unknown_subject")
        if not record.is_active:
            raise AccountInactive()
        stored = record.current_refresh_token or ""
        if not stored or not hmac.compare_digest(stored.encode(), refresh_token.encode()):
            logger.warning("Refresh token mismatch for user %s", record.id)
            raise RefreshTokenMismatch()
        return self.issuer.issue_access(record.id)

    # ------------------------------------------------------------------
    # Authenticate
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str) -> UserCredential:
        """Resolve an access token to its account, or raise.

        Runs on every protected request: signature, expiry, record lookup and
        field comparisons only -- no password hashing on this path.
        """
        claims = self.issuer.verify_access(access_token)
        record = self.store.find_by_id(claims.subject)
        if record is None:
            raise TokenInvalid("unknown_subject")
        if not record.is_active:
            raise AccountInactive()
        if self.credentials.password_changed_after(record, claims.issued_at):
            logger.info("Rejected token issued before password change for user %s", record.id)
            raise SessionInvalidated()
        if self.credentials.is_locked(record, self.clock.now()):
            raise AccountLocked(record.locked_until)
        return record

    # ------------------------------------------------------------------
    # Password change and logout
    # ------------------------------------------------------------------

    def change_password(self, access_token: str, current_password: str, new_password: str) -> SessionResult:
        """Replace the password and open a fresh session.

        Every access token issued before the change stops authenticating, and
        the stored refresh token is rotated so the old one stops refreshing.
        """
        record = self.authenticate(access_token)
        if not self.credentials.verify(current_password, record.password_hash):
            raise InvalidCredentials("wrong_password")

        evaluation = self.evaluate_password(new_password)
        if not evaluation.valid:
            raise ValidationFailed(evaluation.violations)

        new_hash = self.credentials.hash(new_password)
        now = self.clock.now()
        # New tokens carry iat = now; password_changed_at lands one skew earlier.
        access_token = self.issuer.issue_access(record.id)
        refresh_token = self.issuer.issue_refresh(record.id)

        def replace_password(r: UserCredential) -> UserCredential:
            r = self.credentials.on_password_changed(dataclasses.replace(r, password_hash=new_hash), now)
            return dataclasses.replace(r, current_refresh_token=refresh_token)

        record = self._mutate(record, replace_password)
        logger.info("Password changed for user %s", record.id)
        return SessionResult(record, access_token, refresh_token)

    def logout(self, access_token: str) -> None:
        """Revoke the account's refresh token. Outstanding access tokens run to expiry."""
        record = self.authenticate(access_token)
        self._mutate(record, lambda r: dataclasses.replace(r, current_refresh_token=None))
        logger.info("User %s logged out", record.id)

    # ------------------------------------------------------------------
    # Persistence helper
    # ------------------------------------------------------------------

    def _mutate(self, record: UserCredential, transition: Transition) -> UserCredential:
        """Apply a transition and save it, retrying once on a concurrent write."""
        try:
            return self.store.save(transition(record))
        except StoreConflict:
            logger.info("Write conflict on user %s, retrying once", record.id)
        fresh = self.store.find_by_id(record.id)
        if fresh is None:
            raise AuthInternalError(f"user {record.id} disappeared during update")
        try:
            return self.store.save(transition(fresh))
        except StoreConflict as exc:
            raise AuthInternalError(f"repeated write conflict on user {record.id}") from exc
