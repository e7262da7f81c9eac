"""Actors, permission guard and bearer-token authentication."""

from resourceforge.auth.types import (
    ROLE_HIERARCHY,
    ActorContext,
    TokenClaims,
)
from resourceforge.auth.jwt_service import JWTService
from resourceforge.auth.middleware import AuthMiddleware, get_actor
from resourceforge.auth.permissions import (
    actor_is_role,
    guard,
    writable_payload,
)

__all__ = [
    "ActorContext",
    "TokenClaims",
    "JWTService",
    "AuthMiddleware",
    "get_actor",
    "guard",
    "actor_is_role",
    "writable_payload",
    "ROLE_HIERARCHY",
]
