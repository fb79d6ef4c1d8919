"""
auth/store.py -- SQLAlchemy Core persistence layer for user identities.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route, authenticator and guard code never touch SQL directly.

Security:
  Every statement is built with SQLAlchemy Core, so values are always bound
  parameters.

  get_by_username() returns None for an unknown user. Callers MUST NOT turn
  that into an externally visible difference from a wrong password -- the
  Authenticator is the only sanctioned caller on the login path.

  verify_password() is the store's side of the credential contract: a
  constant-time bcrypt comparison against the stored salted hash.

Default DB: in-memory shared-cache SQLite (see core/config.py). Pass any
SQLAlchemy URL to persist elsewhere.

Layer rule: no imports from api/ or tasks/. core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import User
from auth.passwords import verify_password
from core.db import make_engine, retry_transient

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("email", String(255)),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        uid = store.create_user(User(username="alice", hashed_password=hash_password("pw-of-alice")))
        store.verify_password(store.get_by_id(uid), "pw-of-alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @retry_transient
    def has_users(self) -> bool:
        """Return True if at least one user record exists. Used by demo seeding."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    @retry_transient
    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    @retry_transient
    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    @retry_transient
    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def verify_password(self, user: User, plaintext: str) -> bool:
        """Constant-time check of plaintext against the user's stored salted hash."""
        return verify_password(plaintext, user.hashed_password)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @retry_transient
    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Callers map that to 409 Conflict.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    email=user.email,
                    role=user.role,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    @retry_transient
    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace the stored hash. The caller hashes; plaintext never reaches the store.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(hashed_password=hashed_password)
            )
            conn.commit()
        return result.rowcount > 0

    @retry_transient
    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Tokens already issued to the user stop working on sensitive routes
        immediately (the guard re-reads the store) and everywhere else at expiry.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        email=row.email,
        role=row.role,
        created_at=row.created_at,
    )
