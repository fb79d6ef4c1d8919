"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tasks/models.py -- dataclasses own domain shape; stores, the authenticator
and the guard do the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


@dataclass
class User:
    """An identity record held by the credential store.

    hashed_password is a salted bcrypt hash. It never leaves the auth layer:
    API response models copy an explicit allow-list of fields and never
    serialize this dataclass directly.
    """

    username: str
    hashed_password: str
    role: str = ROLE_USER  # "admin" | "user"
    email: str | None = None
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The verified view of a session token, handed to route handlers.

    role is the snapshot taken at token issuance. For sensitive capabilities
    the guard replaces it with the role currently held in the store.
    """

    user_id: int
    username: str
    role: str
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class SessionToken:
    """A freshly issued bearer token plus the identity it encodes."""

    token: str
    identity: Identity

    @property
    def expires_in(self) -> int:
        return self.identity.expires_at - self.identity.issued_at
