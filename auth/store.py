"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly. UserRepository is the protocol the auth
service depends on, so another store (or a test double) can stand in.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is the authoritative duplicate check. The service's
  get_by_email() pre-check is best effort only; two concurrent registrations
  can both pass it, and the loser gets sqlalchemy.exc.IntegrityError from
  create_user(). The service translates that into ConflictError.

  Emails are stored in canonical (lowercased) form, and lookups lowercase
  their argument, so uniqueness is case-insensitive.

DB path: auth/authgate_users.db by default (Settings.database_url).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex, opaque to clients
    Column("email", String(255), nullable=False, unique=True),  # canonical, lowercased
    Column("password_hash", Text, nullable=False),  # bcrypt, self-describing
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("is_email_verified", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("reset_password_token", Text),  # never returned to clients
    Column("reset_password_expires", String(32)),
    Column("last_login", String(32)),  # ISO 8601 timestamp of last successful login
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_user() will write. Everything else is store-managed.
_UPDATABLE = frozenset(
    {
        "email",
        "password_hash",
        "first_name",
        "last_name",
        "is_email_verified",
        "is_active",
        "reset_password_token",
        "reset_password_expires",
        "last_login",
    }
)
_BOOL_COLUMNS = ("is_email_verified", "is_active")


class UserRepository(Protocol):
    def create_user(self, user: User) -> User: ...

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def update_user(self, user_id: str, **fields) -> User | None: ...

    def update_last_login(self, user_id: str) -> User | None: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///users.db")
        user = store.create_user(User(email="a@b.com", first_name="Jo", last_name="Do",
                                      password_hash=hash_password("StrongPass1!")))
        store.get_by_email("A@B.com")   # same record
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

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps assigned.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email.strip().lower(),
                    password_hash=user.password_hash,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    is_email_verified=1 if user.is_email_verified else 0,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.strip().lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> User | None:
        """Update mutable fields and stamp updated_at.

        Only columns in _UPDATABLE are accepted; anything else raises
        ValueError rather than being silently dropped. Booleans are converted
        to int for SQLite.

        Returns the updated User, or None if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        for name in _BOOL_COLUMNS:
            if name in fields:
                fields[name] = 1 if fields[name] else 0
        if "email" in fields:
            fields["email"] = fields["email"].strip().lower()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
            if result.rowcount == 0:
                return None
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def update_last_login(self, user_id: str) -> User | None:
        """Stamp the current UTC timestamp as last_login. Called on every successful login."""
        return self.update_user(user_id, last_login=_now_iso())

    def ping(self) -> None:
        """Run a trivial query. Raises SQLAlchemyError if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        is_email_verified=bool(row.is_email_verified),
        is_active=bool(row.is_active),
        reset_password_token=row.reset_password_token,
        reset_password_expires=row.reset_password_expires,
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
