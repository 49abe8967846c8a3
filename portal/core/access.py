"""
Role capability sets and the page route policy table.

The policy table is an ordered list of ``(prefix, roles)`` entries. A path
is matched against the entries in declaration order and the first match
decides which roles may open it. Prefixes match on whole path segments, so
``/admin`` covers ``/admin`` and ``/admin/users`` but not ``/administrator``.

Because the first match wins, a more specific prefix must come before any
prefix that covers it. ``validate_policy_table`` enforces this at startup.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence

from portal.core.errors import PermissionDenied
from portal.models.user import User, UserRole

SUPER_ADMIN_ONLY: FrozenSet[UserRole] = frozenset({UserRole.SUPER_ADMIN})
ADMINS: FrozenSet[UserRole] = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})
STAFF_AND_ADMINS: FrozenSet[UserRole] = ADMINS | {UserRole.STAFF}
ALL_ROLES: FrozenSet[UserRole] = frozenset(UserRole)


class PolicyConfigurationError(ValueError):
    """Raised when the route policy table is ambiguous."""


@dataclass(frozen=True)
class RoutePolicy:
    prefix: str
    roles: FrozenSet[UserRole]

    def matches(self, path: str) -> bool:
        return path_has_prefix(path, self.prefix)


def path_has_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix test."""
    prefix = prefix.rstrip("/") or "/"
    if prefix == "/":
        return path.startswith("/")
    return path == prefix or path.startswith(prefix + "/")


DEFAULT_ROUTE_POLICIES: tuple[RoutePolicy, ...] = (
    RoutePolicy("/admin/license", SUPER_ADMIN_ONLY),
    RoutePolicy("/admin/knowledge-base", SUPER_ADMIN_ONLY),
    RoutePolicy("/admin", ADMINS),
    RoutePolicy("/staff", STAFF_AND_ADMINS),
    RoutePolicy("/reports", ADMINS),
    RoutePolicy("/billing", ALL_ROLES),
)


def validate_policy_table(policies: Sequence[RoutePolicy]) -> None:
    """
    Reject tables where an entry can never be reached.

    Raises:
        PolicyConfigurationError: on a malformed prefix, a duplicate, or an
            entry shadowed by an earlier, broader prefix.
    """
    for index, policy in enumerate(policies):
        if not policy.prefix.startswith("/"):
            raise PolicyConfigurationError(f"Policy prefix must start with '/': {policy.prefix!r}")
        if not policy.roles:
            raise PolicyConfigurationError(f"Policy {policy.prefix!r} allows no roles")
        for earlier in policies[:index]:
            if path_has_prefix(policy.prefix.rstrip("/") or "/", earlier.prefix):
                raise PolicyConfigurationError(
                    f"Policy {policy.prefix!r} is shadowed by earlier entry {earlier.prefix!r}; "
                    "list more specific prefixes first"
                )


def match_policy(path: str, policies: Iterable[RoutePolicy]) -> Optional[RoutePolicy]:
    """Return the first policy whose prefix covers ``path``."""
    for policy in policies:
        if policy.matches(path):
            return policy
    return None


def has_role(user: User, allowed: Iterable[UserRole]) -> bool:
    return user.role in set(allowed)


def ensure_role(user: User, allowed: Iterable[UserRole], message: str = "Forbidden") -> User:
    """
    Single capability check used by every handler.

    Raises:
        PermissionDenied: if the user's role is not in ``allowed``
    """
    if not has_role(user, allowed):
        raise PermissionDenied(message)
    return user
