"""
auth/tokens.py -- Session token issuance and verification (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), username, role,
       iat and exp. The signing key and TTL are injected into TokenService by
       the API lifespan -- nothing here reads settings or module globals.

  Expiry: python-jose's own exp check is disabled and replaced with an
       explicit comparison against an injectable clock. A token is valid
       while now < exp and rejected from exp onward, so expiry is enforced
       exactly at iat + TTL and is testable without sleeping.

  Verification order: signature first, then claim shape, then expiry. A
       forged token never reaches the expiry check, so an attacker cannot use
       error timing to probe which claims a server would accept.

  Failures raise Unauthenticated with a specific internal reason. The public
       message is the same for every reason (see auth/errors.py).

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from jose import JWTError, jwt

from auth.errors import Unauthenticated
from auth.models import Identity, SessionToken, User

ALGORITHM = "HS256"

# Claims every token must carry. Anything missing is treated as forged.
_REQUIRED_CLAIMS = ("sub", "username", "role", "iat", "exp")


class TokenService:
    """Issue and verify signed session tokens.

    Args:
        secret_key:  HS256 signing key (process-wide, loaded once at startup).
        ttl_seconds: Lifetime of every issued token.
        clock:       Returns current epoch seconds. Injected for tests.
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty signing key.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def issue(self, user: User, now: int | None = None) -> SessionToken:
        """Encode a signed token for user with exp = iat + ttl_seconds."""
        issued_at = self._now() if now is None else now
        identity = Identity(
            user_id=user.id,
            username=user.username,
            role=user.role,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl_seconds,
        )
        payload = {
            "sub": str(identity.user_id),
            "username": identity.username,
            "role": identity.role,
            "iat": identity.issued_at,
            "exp": identity.expires_at,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        return SessionToken(token=token, identity=identity)

    def verify(self, token: str, now: int | None = None) -> Identity:
        """Decode token and return its Identity. Raises Unauthenticated on any failure."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise Unauthenticated("bad_signature") from exc

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            raise Unauthenticated("bad_claims")
        try:
            identity = Identity(
                user_id=int(payload["sub"]),
                username=str(payload["username"]),
                role=str(payload["role"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (TypeError, ValueError) as exc:
            raise Unauthenticated("bad_claims") from exc

        current = self._now() if now is None else now
        if current >= identity.expires_at:
            raise Unauthenticated("expired")
        return identity
