"""
auth/seed.py -- Demo accounts for local development.

Only used when SEED_DEMO_USERS=true, which core/config.py refuses unless
DEBUG=true. The accounts share a published password.
"""

from __future__ import annotations

import logging

from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.passwords import hash_password
from auth.store import UserStore

logger = logging.getLogger("taskguard.auth")

DEMO_PASSWORD = "password123"  # noqa: S105 # nosec B105 -- documented demo credential, DEBUG only

DEMO_USERS: tuple[tuple[str, str, str], ...] = (
    ("admin", "admin@example.com", ROLE_ADMIN),
    ("user1", "user1@example.com", ROLE_USER),
)


def seed_demo_users(store: UserStore, rounds: int = 12) -> list[int]:
    """Create the demo accounts if the store is empty. Returns the new ids.

    Idempotent: a store that already has any user is left untouched.
    One hash is shared by all demo users -- bcrypt is slow and the password
    is the same anyway.
    """
    if store.has_users():
        return []
    hashed = hash_password(DEMO_PASSWORD, rounds=rounds)
    ids = [
        store.create_user(User(username=username, hashed_password=hashed, email=email, role=role))
        for username, email, role in DEMO_USERS
    ]
    logger.warning("Seeded %d demo users with the published demo password", len(ids))
    return ids
