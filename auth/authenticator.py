"""
auth/authenticator.py -- Username/password login with timing equalization.

Authenticator.login() is the only sanctioned login path. Do NOT inline
store.get_by_username() + verify_password() in a route handler -- that
re-introduces username enumeration via response timing.

Timing equalization:
  bcrypt runs exactly once per login attempt whether or not the username
  exists:
    - Unknown username: bcrypt runs against _dummy_hash (same cost factor).
    - Wrong password:   bcrypt runs against the real hash.
  The dummy hash is computed once at construction, with the same cost factor
  as stored hashes, so the first failed login is not measurably slower.

Uniform failure:
  Both failure paths raise InvalidCredentials. The reason ("unknown_user" or
  "bad_password") exists only for the server log.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging

from auth.errors import InvalidCredentials
from auth.models import SessionToken
from auth.passwords import hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("taskguard.auth")


class Authenticator:
    """Verify credentials against the store and issue session tokens.

    Stateless: no session table, nothing persisted on login.
    """

    def __init__(self, store: UserStore, tokens: TokenService, bcrypt_rounds: int = 12) -> None:
        self._store = store
        self._tokens = tokens
        self._dummy_hash = hash_password("taskguard_timing_dummy", rounds=bcrypt_rounds)

    def login(self, username: str, password: str) -> SessionToken:
        """Return a signed SessionToken, or raise InvalidCredentials."""
        user = self._store.get_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password, self._dummy_hash)
            logger.info("Login failed for %r (unknown_user)", username)
            raise InvalidCredentials("unknown_user")
        if not self._store.verify_password(user, password):
            logger.info("Login failed for %r (bad_password)", username)
            raise InvalidCredentials("bad_password")

        session = self._tokens.issue(user)
        logger.info("Login succeeded for user_id=%d role=%s", user.id, user.role)
        return session
