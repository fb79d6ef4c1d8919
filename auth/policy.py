"""
auth/policy.py -- Capabilities, role grants, and the static route-policy table.

Every HTTP route is classified here, in one reviewable table, as either
PUBLIC or Protected(capability). The AccessGuard enforces the table for every
request; check_route_policies() runs at startup and refuses to boot an app
that has a route missing from the table (or a table entry with no route).
A new handler therefore cannot ship unguarded by forgetting a Depends().

Capabilities carry two flags:
  owner_scoped -- the resource belongs to a user; only the owner or an admin
                  passes. The handler loads the resource and calls
                  AccessGuard.check_owner() before touching it.
  sensitive    -- the token's role snapshot is not trusted; the guard re-reads
                  the user from the store, so a demoted or deleted admin loses
                  access immediately rather than at token expiry.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from auth.models import ROLE_ADMIN, ROLE_USER


@dataclass(frozen=True)
class CapabilitySpec:
    name: str
    owner_scoped: bool = False
    sensitive: bool = False


class Capability(Enum):
    PROFILE_READ = CapabilitySpec("profile:read")
    PROFILE_UPDATE = CapabilitySpec("profile:update", sensitive=True)
    TASKS_LIST = CapabilitySpec("tasks:list")
    TASKS_CREATE = CapabilitySpec("tasks:create")
    TASKS_READ = CapabilitySpec("tasks:read", owner_scoped=True)
    TASKS_UPDATE = CapabilitySpec("tasks:update", owner_scoped=True)
    TASKS_DELETE = CapabilitySpec("tasks:delete", owner_scoped=True)
    USERS_LIST = CapabilitySpec("users:list", sensitive=True)
    USERS_CREATE = CapabilitySpec("users:create", sensitive=True)
    USERS_DELETE = CapabilitySpec("users:delete", sensitive=True)

    @property
    def owner_scoped(self) -> bool:
        return self.value.owner_scoped

    @property
    def sensitive(self) -> bool:
        return self.value.sensitive


_USER_CAPABILITIES = frozenset(
    {
        Capability.PROFILE_READ,
        Capability.PROFILE_UPDATE,
        Capability.TASKS_LIST,
        Capability.TASKS_CREATE,
        Capability.TASKS_READ,
        Capability.TASKS_UPDATE,
        Capability.TASKS_DELETE,
    }
)

ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    ROLE_ADMIN: frozenset(Capability),
    ROLE_USER: _USER_CAPABILITIES,
}


def role_grants(role: str, capability: Capability) -> bool:
    """Return True if role holds capability. Unknown roles hold nothing."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


# ---------------------------------------------------------------------------
# Route classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Public:
    """Marker: no token required."""


@dataclass(frozen=True)
class Protected:
    capability: Capability


RoutePolicy = Public | Protected

PUBLIC = Public()

# Keyed by (HTTP method, path template exactly as registered on the app).
ROUTE_POLICIES: dict[tuple[str, str], RoutePolicy] = {
    ("GET", "/health"): PUBLIC,
    ("POST", "/api/login"): PUBLIC,
    ("GET", "/api/me"): Protected(Capability.PROFILE_READ),
    ("POST", "/api/me/password"): Protected(Capability.PROFILE_UPDATE),
    ("GET", "/api/users"): Protected(Capability.USERS_LIST),
    ("POST", "/api/users"): Protected(Capability.USERS_CREATE),
    ("DELETE", "/api/admin/users/{user_id}"): Protected(Capability.USERS_DELETE),
    ("GET", "/api/tasks"): Protected(Capability.TASKS_LIST),
    ("POST", "/api/tasks"): Protected(Capability.TASKS_CREATE),
    ("GET", "/api/tasks/search"): Protected(Capability.TASKS_LIST),
    ("GET", "/api/tasks/{task_id}"): Protected(Capability.TASKS_READ),
    ("PATCH", "/api/tasks/{task_id}"): Protected(Capability.TASKS_UPDATE),
    ("DELETE", "/api/tasks/{task_id}"): Protected(Capability.TASKS_DELETE),
}


def lookup_policy(method: str, path: str) -> RoutePolicy | None:
    """Return the declared policy for a route, or None if it is unclassified."""
    return ROUTE_POLICIES.get((method.upper(), path))


def check_route_policies(
    routes: Iterable[tuple[str, str]],
    policies: dict[tuple[str, str], RoutePolicy] = ROUTE_POLICIES,
) -> None:
    """Fail fast if registered routes and the policy table disagree.

    Args:
        routes:   (METHOD, path) pairs for every registered API route.
        policies: The table to check against.

    Raises:
        RuntimeError listing every unclassified route and every stale entry.
    """
    registered = {(m.upper(), p) for m, p in routes}
    unclassified = sorted(registered - set(policies))
    stale = sorted(set(policies) - registered)
    problems = []
    if unclassified:
        problems.append(f"routes with no access policy: {unclassified}")
    if stale:
        problems.append(f"policy entries with no route: {stale}")
    if problems:
        raise RuntimeError("Route policy table mismatch -- " + "; ".join(problems))
