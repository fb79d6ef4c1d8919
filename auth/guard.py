"""
auth/guard.py -- The access guard and its FastAPI dependency seam.

A request moves through:
  Received -> TokenExtracted -> SignatureVerified -> ExpiryChecked
           -> PolicyChecked -> Admitted
or is Rejected at the first failing step with Unauthenticated (401) or
Forbidden (403). The two are never swapped: clients use 401 to mean
"log in again" and 403 to mean "you may not".

enforce_route_policy() is registered ONCE as an app-wide dependency in
api/main.py. It looks up the matched route in auth.policy.ROUTE_POLICIES and
either lets a PUBLIC route through or runs AccessGuard.authorize(). Handlers
that need the caller's identity depend on current_identity(), which reuses
the same (cached) dependency result -- the guard runs once per request.

Owner-scoped capabilities are a two-step check: the route-level pass proves
the role may perform the action at all; the handler then loads the resource
and calls AccessGuard.check_owner() with its owner id. Resource existence
(404) is only revealed after the role check has passed.

Layer rule: no imports from api/ or tasks/. fastapi is allowed here because
this module is part of the dependency injection system.
"""

from __future__ import annotations

import dataclasses
import logging

from fastapi import Depends, Request

from auth.errors import Forbidden, Unauthenticated
from auth.models import Identity
from auth.policy import Capability, Public, lookup_policy, role_grants
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("taskguard.guard")


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an 'Authorization: Bearer <token>' header value.

    The scheme is matched case-insensitively. Anything else -- missing header,
    other schemes, extra parts, empty token -- is Unauthenticated.
    """
    if not authorization:
        raise Unauthenticated("missing_token")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise Unauthenticated("malformed_header")
    return parts[1]


class AccessGuard:
    """Validate bearer tokens and enforce capability and ownership policy.

    Args:
        tokens: TokenService holding the process signing key.
        store:  UserStore, consulted only for sensitive capabilities.
    """

    def __init__(self, tokens: TokenService, store: UserStore) -> None:
        self._tokens = tokens
        self._store = store

    def authenticate(self, authorization: str | None) -> Identity:
        """Extract and verify the bearer token. Raises Unauthenticated."""
        token = extract_bearer_token(authorization)
        return self._tokens.verify(token)

    def authorize(
        self,
        authorization: str | None,
        capability: Capability,
        owner_id: int | None = None,
    ) -> Identity:
        """Run the full guard pipeline and return the admitted Identity.

        Args:
            authorization: Raw Authorization header value (may be None).
            capability:    What the route requires.
            owner_id:      Owning user id of the target resource, when the
                           caller already knows it. Omit it for the route-level
                           pass and call check_owner() once the resource is loaded.
        """
        identity = self.authenticate(authorization)

        if capability.sensitive:
            identity = self._refresh(identity)

        if not role_grants(identity.role, capability):
            raise Forbidden(f"role {identity.role!r} lacks {capability.value.name}")

        if owner_id is not None:
            self.check_owner(identity, capability, owner_id)
        return identity

    def check_owner(self, identity: Identity, capability: Capability, owner_id: int) -> None:
        """Raise Forbidden unless identity owns the resource or is an admin."""
        if not capability.owner_scoped:
            return
        if identity.is_admin or identity.user_id == owner_id:
            return
        raise Forbidden(f"user_id={identity.user_id} does not own resource of user_id={owner_id}")

    def _refresh(self, identity: Identity) -> Identity:
        """Replace the token's role snapshot with the role currently in the store."""
        user = self._store.get_by_id(identity.user_id)
        if user is None:
            raise Unauthenticated("unknown_subject")
        if user.role != identity.role:
            logger.info(
                "Role for user_id=%d changed since token issue (%s -> %s)",
                identity.user_id,
                identity.role,
                user.role,
            )
        return dataclasses.replace(identity, role=user.role, username=user.username)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def enforce_route_policy(request: Request) -> Identity | None:
    """App-wide dependency: apply the declared policy of the matched route.

    Returns None for PUBLIC routes and the admitted Identity otherwise. A route
    with no declared policy is refused -- there is no default-allow path.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    policy = lookup_policy(request.method, path) if path else None
    if policy is None:
        logger.error("No access policy for %s %s -- refusing request", request.method, path)
        raise Forbidden("unclassified_route")
    if isinstance(policy, Public):
        return None

    guard: AccessGuard = request.app.state.guard
    identity = guard.authorize(request.headers.get("Authorization"), policy.capability)
    request.state.identity = identity
    return identity


def current_identity(identity: Identity | None = Depends(enforce_route_policy)) -> Identity:
    """Handler dependency: the identity admitted by enforce_route_policy().

    Use on protected routes only:
        @router.get("/tasks")
        def route(identity: Identity = Depends(current_identity)): ...
    """
    if identity is None:
        raise Unauthenticated("identity_requested_on_public_route")
    return identity
