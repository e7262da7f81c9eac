"""Type definitions for actors and authentication."""

from __future__ import annotations

from dataclasses import dataclass, field

# Role hierarchy - higher number = more permissions
# Higher roles automatically satisfy requirements of lower roles
ROLE_HIERARCHY = {
    "readonly": 1,
    "user": 2,
    "manager": 3,
    "admin": 4,
}


@dataclass
class TokenClaims:
    """Claims embedded in a bearer token.

    Attributes:
        user_id: The authenticated user's ID
        roles: Role names held by the user
        permissions: Permission strings (e.g. "contact.index", "contact.*")
        exp: Token expiration timestamp
        iat: Token issued-at timestamp
    """

    user_id: str
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    exp: int = 0
    iat: int = 0


@dataclass
class ActorContext:
    """The principal a request runs as.

    Attributes:
        user_id: Identifier matched against the ownership field for scoped actors
        roles: Role names, checked by ``is_role``
        permissions: Permission strings, checked by ``can``
        is_system: Internal caller (CLI, jobs); holds every permission
    """

    user_id: str | None = None
    roles: list[str] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)
    is_system: bool = False

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> ActorContext:
        return cls(
            user_id=claims.user_id,
            roles=list(claims.roles),
            permissions=set(claims.permissions),
        )

    def can(self, permission: str) -> bool:
        """Check a permission string.

        Matches the exact string, a resource wildcard (``"contact.*"`` grants
        ``"contact.index"``) or the global wildcard ``"*"``.
        """
        if "*" in self.permissions or permission in self.permissions:
            return True
        resource, _, _ = permission.rpartition(".")
        return bool(resource) and f"{resource}.*" in self.permissions

    def has_permission(self, permission: str) -> bool:
        """Exact membership test, with no wildcard expansion."""
        return permission in self.permissions

    def is_role(self, required_role: str | None) -> bool:
        """Check the actor satisfies a role requirement.

        ``None`` means no restriction. Known roles follow ROLE_HIERARCHY;
        any other role name must be held exactly.
        """
        if not required_role:
            return True
        if required_role in self.roles:
            return True
        required_level = ROLE_HIERARCHY.get(required_role)
        if required_level is None:
            return False
        return any(ROLE_HIERARCHY.get(role, 0) >= required_level for role in self.roles)
