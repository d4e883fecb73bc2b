"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_credential / _credential_to_values are the mappers. The session
service never touches SQL directly, and only depends on the RecordStore
protocol, so any store with the same five methods can stand in.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  save() is optimistic. The UPDATE matches on (id, version) and bumps the
  version; zero rows updated means another writer got there first and
  StoreConflict is raised. The caller reloads and reapplies its transition.

  email and username carry UNIQUE constraints, so two concurrent
  registrations for the same identifier cannot both succeed; the loser sees
  DuplicateIdentifier from create(), translated from the driver's
  IntegrityError so callers stay backend-agnostic.

Timestamps are stored as ISO 8601 UTC strings (same as the rest of the
project) and mapped back to aware datetimes.

DB path: taskguard_auth.db at the project root unless DATABASE_URL is set.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import dataclasses
import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateIdentifier, StoreConflict
from auth.models import IdentifierKind, UserCredential, normalize_identifier

# ---------------------------------------------------------------------------
# Collaborator interface
# ---------------------------------------------------------------------------


class RecordStore(Protocol):
    def find_by_identifier(self, value: str) -> UserCredential | None: ...

    def find_by_id(self, record_id: str) -> UserCredential | None: ...

    def exists_by_identifier(self, kind: IdentifierKind, value: str) -> bool: ...

    def create(self, record: UserCredential) -> UserCredential: ...

    def save(self, record: UserCredential) -> UserCredential: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("password_changed_at", String(32)),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("current_refresh_token", Text),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    Column("version", Integer, nullable=False, server_default="0"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by the lockout writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for UserCredential records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        record = store.create(UserCredential(email="a@x.com", username="alice", password_hash=h))
        record = store.find_by_identifier("ALICE")
        record = store.save(dataclasses.replace(record, failed_attempts=1))
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_identifier(self, value: str) -> UserCredential | None:
        """Look up a user by email OR username, case-insensitively."""
        ident = normalize_identifier(value)
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users).where(or_(_users.c.email == ident, _users.c.username == ident))
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def find_by_id(self, record_id: str) -> UserCredential | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users).where(_users.c.id == record_id)).fetchone()
        return _row_to_credential(row) if row is not None else None

    def exists_by_identifier(self, kind: IdentifierKind, value: str) -> bool:
        column = _users.c.email if IdentifierKind(kind) is IdentifierKind.EMAIL else _users.c.username
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(column == normalize_identifier(value))).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, record: UserCredential) -> UserCredential:
        """Insert a new record and return it with id, created_at and version filled in.

        Raises DuplicateIdentifier if the email or username exists.
        """
        created = dataclasses.replace(
            record,
            id=record.id or uuid.uuid4().hex,
            email=normalize_identifier(record.email),
            username=normalize_identifier(record.username),
            created_at=record.created_at or datetime.now(timezone.utc),
            version=1,
        )
        with self.engine.connect() as conn:
            try:
                conn.execute(_users.insert().values(id=created.id, **_credential_to_values(created)))
            except IntegrityError as exc:
                raise DuplicateIdentifier("email or username already registered") from exc
            conn.commit()
        return created

    def save(self, record: UserCredential) -> UserCredential:
        """Write the record if nobody else has since it was loaded.

        Returns the record with its bumped version. Raises StoreConflict when
        the stored version no longer matches record.version (or the row is gone).
        """
        saved = dataclasses.replace(record, version=record.version + 1)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == record.id) & (_users.c.version == record.version))
                .values(**_credential_to_values(saved))
            )
            conn.commit()
        if result.rowcount == 0:
            raise StoreConflict(f"user {record.id} changed since version {record.version}")
        return saved

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _credential_to_values(record: UserCredential) -> dict:
    return {
        "email": record.email,
        "username": record.username,
        "password_hash": record.password_hash,
        "password_changed_at": _to_iso(record.password_changed_at),
        "failed_attempts": record.failed_attempts,
        "locked_until": _to_iso(record.locked_until),
        "is_active": 1 if record.is_active else 0,
        "current_refresh_token": record.current_refresh_token,
        "created_at": _to_iso(record.created_at),
        "last_login": _to_iso(record.last_login),
        "version": record.version,
    }


def _row_to_credential(row) -> UserCredential:
    return UserCredential(
        id=row.id,
        email=row.email,
        username=row.username,
        password_hash=row.password_hash,
        password_changed_at=_from_iso(row.password_changed_at),
        failed_attempts=row.failed_attempts,
        locked_until=_from_iso(row.locked_until),
        is_active=bool(row.is_active),
        current_refresh_token=row.current_refresh_token,
        created_at=_from_iso(row.created_at),
        last_login=_from_iso(row.last_login),
        version=row.version,
    )
