"""
auth/credentials.py -- Password hashing and account lockout state transitions.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The work factor comes
       from Settings.bcrypt_rounds. bcrypt only reads the first 72 bytes of its
       input and recent releases raise instead of truncating, so the encoded
       password is cut to 72 bytes here, identically for hash and verify.

  Timing equalization: verify_dummy() runs bcrypt against a hash computed
       once per CredentialStore at the same cost, so a login for an unknown
       identifier takes as long as a wrong password for a real one.

  Lockout: record_failure / reset_failures are pure transitions that return
       a new UserCredential. Persisting the result (and retrying on a
       concurrent write) is the session service's job.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta

import bcrypt

from auth.models import UserCredential

# password_changed_at is stamped this far in the past so a token issued in the
# same request as the change (iat = now) is not rejected by
# password_changed_after(). Coarser clock resolution than this skew would make
# the ordering ambiguous; see DESIGN.md.
PASSWORD_CHANGE_SKEW = timedelta(seconds=1)

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialStore:
    """Hash/verify plus the failed-login, lockout and password-change transitions.

    Usage:
        creds = CredentialStore(rounds=12)
        record.password_hash = creds.hash("Tr0ub4dor&3")
        if not creds.verify(candidate, record.password_hash):
            record = creds.record_failure(record, clock.now())
    """

    def __init__(
        self,
        rounds: int = 10,
        lockout_threshold: int = 5,
        lockout_duration: timedelta = timedelta(hours=2),
    ) -> None:
        self.rounds = rounds
        self.lockout_threshold = lockout_threshold
        self.lockout_duration = lockout_duration
        self._dummy_hash = self.hash("taskguard_timing_dummy")

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def hash(self, plain: str) -> str:
        """Return a self-salted bcrypt hash of the plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A missing or malformed stored hash is a mismatch, not a fault.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt comparison's worth of CPU. Result is discarded."""
        self.verify(plain, self._dummy_hash)

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    def is_locked(self, record: UserCredential, now: datetime) -> bool:
        return record.locked_until is not None and record.locked_until > now

    def record_failure(self, record: UserCredential, now: datetime) -> UserCredential:
        """Count one failed password check and lock the account at the threshold.

        An expired lock restarts the count at 1 rather than incrementing, so
        the first failure after a lockout never re-locks immediately.
        """
        if record.locked_until is not None and record.locked_until <= now:
            record = dataclasses.replace(record, failed_attempts=1, locked_until=None)
        else:
            record = dataclasses.replace(record, failed_attempts=record.failed_attempts + 1)

        if record.failed_attempts >= self.lockout_threshold and not self.is_locked(record, now):
            record = dataclasses.replace(record, locked_until=now + self.lockout_duration)
        return record

    def reset_failures(self, record: UserCredential) -> UserCredential:
        return dataclasses.replace(record, failed_attempts=0, locked_until=None)

    # ------------------------------------------------------------------
    # Password change
    # ------------------------------------------------------------------

    def on_password_changed(self, record: UserCredential, now: datetime) -> UserCredential:
        """Stamp password_changed_at after the hash on an existing record was replaced.

        Never call this on a record that is being created -- new accounts have
        no tokens to invalidate and keep password_changed_at as None.
        """
        return dataclasses.replace(record, password_changed_at=now - PASSWORD_CHANGE_SKEW)

    def password_changed_after(self, record: UserCredential, token_issued_at: int) -> bool:
        """True if the password changed strictly after the token's issue second."""
        if record.password_changed_at is None:
            return False
        return int(record.password_changed_at.timestamp()) > token_issued_at
