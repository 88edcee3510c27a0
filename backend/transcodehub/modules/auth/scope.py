"""Owner/role scope derived from verified caller claims.

The scope is recomputed on every request and never persisted. Anything
missing or malformed resolves to the ``unknown`` owner without admin
rights.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from transcodehub.core.exceptions import AccessDeniedError

UNKNOWN_OWNER = "unknown"
ADMIN_CACHE_KEY = "admin"

DEFAULT_OWNER_CLAIM = "cognito:username"
DEFAULT_GROUP_CLAIMS = ("cognito:groups", "groups", "roles")
DEFAULT_ADMIN_GROUP = "admin"

AREAS = ("uploads", "processed")

# Owner ids become storage key segments
_KEY_SAFE = re.compile(r"^[A-Za-z0-9_.@+-]+$")


@dataclass(frozen=True)
class AccessScope:
    """Namespaces a caller may see."""
    owner_id: str
    is_admin: bool
    listing_prefixes: tuple[str, ...]

    @property
    def cache_key(self) -> str:
        return ADMIN_CACHE_KEY if self.is_admin else f"owner:{self.owner_id}"

    def prefix_for(self, area: str) -> str:
        """Listing prefix for ``uploads`` or ``processed`` under this scope."""
        return f"{area}/" if self.is_admin else f"{area}/{self.owner_id}/"


def is_key_safe(value: Any) -> bool:
    return isinstance(value, str) and value not in (".", "..") and bool(_KEY_SAFE.match(value))


def _owner_candidates(claims: Mapping[str, Any], owner_claim: str) -> Iterable[Any]:
    yield claims.get(owner_claim)
    yield claims.get("username")
    email = claims.get("email")
    if isinstance(email, str) and "@" in email:
        yield email.split("@", 1)[0]


def resolve_owner(claims: Mapping[str, Any], owner_claim: str = DEFAULT_OWNER_CLAIM) -> str:
    """First usable owner identity from the claims, else ``unknown``."""
    for candidate in _owner_candidates(claims, owner_claim):
        if is_key_safe(candidate):
            return candidate
    return UNKNOWN_OWNER


def resolve_admin(
    claims: Mapping[str, Any],
    group_claims: Sequence[str] = DEFAULT_GROUP_CLAIMS,
    admin_group: str = DEFAULT_ADMIN_GROUP,
) -> bool:
    """True if any group membership equals the admin group, ignoring case."""
    wanted = admin_group.lower()
    for claim in group_claims:
        groups = claims.get(claim)
        if not isinstance(groups, (list, tuple, set, frozenset)):
            continue
        if any(isinstance(g, str) and g.lower() == wanted for g in groups):
            return True
    return False


def resolve_scope(
    claims: Any,
    owner_claim: str = DEFAULT_OWNER_CLAIM,
    group_claims: Sequence[str] = DEFAULT_GROUP_CLAIMS,
    admin_group: str = DEFAULT_ADMIN_GROUP,
) -> AccessScope:
    """Compute the visibility scope for a caller.

    Args:
        claims: Verified token claims
        owner_claim: Provider-specific username claim, tried first
        group_claims: Claims that may carry group memberships
        admin_group: Group name granting global visibility

    Returns:
        AccessScope with owner id, admin flag and listing prefixes
    """
    if not isinstance(claims, Mapping):
        owner_id, is_admin = UNKNOWN_OWNER, False
    else:
        owner_id = resolve_owner(claims, owner_claim)
        is_admin = resolve_admin(claims, group_claims, admin_group)

    if is_admin:
        prefixes = tuple(f"{area}/" for area in AREAS)
    else:
        prefixes = tuple(f"{area}/{owner_id}/" for area in AREAS)

    return AccessScope(owner_id=owner_id, is_admin=is_admin, listing_prefixes=prefixes)


def ensure_owner_access(scope: AccessScope, owner_id: Optional[str]) -> str:
    """Return the owner namespace the caller may act on.

    Raises:
        AccessDeniedError: If a non-admin targets another owner
    """
    if owner_id is None or owner_id == scope.owner_id:
        return scope.owner_id
    if not scope.is_admin:
        raise AccessDeniedError("Access to another owner's namespace is not allowed")
    return owner_id
