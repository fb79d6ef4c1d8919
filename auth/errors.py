"""
auth/errors.py -- Authentication and authorization error taxonomy.

Every error carries two messages:
  reason         -- internal, specific ("expired", "bad_signature", ...).
                    Logged server-side, never sent to the client.
  public_message -- external, uniform per class. Clients only ever see this.

This is the "internally-distinguishable but externally-uniform" contract:
operators can tell an expired token from a forged one in the logs, while a
caller probing the API learns nothing beyond 401 vs 403.

api/main.py registers one exception handler for AuthError that turns any
subclass into {"error": public_message} with the class's status code.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 401
    public_message: str = "Authentication required"

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason or self.public_message)
        self.reason = reason

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class InvalidCredentials(AuthError):
    """Login failed. Identical for unknown usernames and wrong passwords."""

    status_code = 401
    public_message = "Invalid credentials"


class Unauthenticated(AuthError):
    """No usable token: missing, malformed, forged, expired, or orphaned."""

    status_code = 401
    public_message = "Authentication required"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AuthError):
    """Valid identity, but the route's policy is not satisfied."""

    status_code = 403
    public_message = "Forbidden"
