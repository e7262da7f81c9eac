"""Per-request context handed to every resource handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from resourceforge.auth.types import ActorContext
from resourceforge.metadata.loader import EntityType
from resourceforge.query.types import QuerySpec


@dataclass
class RequestContext:
    """Everything a handler needs for one request.

    Attributes:
        actor: The requesting principal, or None when unauthenticated
        entity: The resolved entity type
        resource: URL resource slug; prefixes permission strings
        query: Parsed list/export query parameters
        params: Raw input (query params and, for writes, the payload)
        record: The record resolved from the URL id, when there is one
    """

    actor: ActorContext | None
    entity: EntityType
    resource: str = ""
    query: QuerySpec = field(default_factory=QuerySpec)
    params: dict[str, Any] = field(default_factory=dict)
    record: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.resource:
            self.resource = self.entity.resource

    def permission(self, action: str) -> str:
        """Permission string for an action on this resource, e.g. ``contact.index``."""
        return f"{self.resource}.{action}"
