"""Permission guard and field-level write policy."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from resourceforge.auth.types import ActorContext
from resourceforge.errors import Unauthorized

if TYPE_CHECKING:
    from resourceforge.metadata.loader import EntityType

logger = logging.getLogger(__name__)


def guard(
    actor: ActorContext | None,
    permission: str,
    allow_anonymous: bool = False,
) -> None:
    """Authorize ``permission`` (e.g. ``"contact.index"``) for an actor.

    A request without an actor fails closed unless the deployment allows
    anonymous access.

    Raises:
        Unauthorized: If the actor may not perform the action
    """
    if actor is None:
        if allow_anonymous:
            return
        logger.info("Denied %s: no actor", permission)
        raise Unauthorized("Authentication required")

    if not actor.can(permission):
        logger.info("Denied %s for user %s", permission, actor.user_id)
        raise Unauthorized("No privileges.")


def actor_is_role(actor: ActorContext | None, required_role: str | None) -> bool:
    """Role check tolerant of a missing actor: only unrestricted fields pass."""
    if actor is None:
        return not required_role
    return actor.is_role(required_role)


def writable_payload(
    data: dict[str, Any],
    entity: EntityType,
    actor: ActorContext | None,
) -> dict[str, Any]:
    """Strip keys the actor cannot write from an incoming payload.

    Drops unknown keys, virtual fields, the primary key, fields marked
    ``editable: false`` and fields whose role the actor lacks.

    Args:
        data: The write payload from the client
        entity: The entity type receiving the write
        actor: The requesting actor

    Returns:
        A filtered copy of the payload
    """
    result: dict[str, Any] = {}
    for key, value in data.items():
        descriptor = entity.fields.get(key)
        if descriptor is None or descriptor.virtual or key == entity.primary_key:
            continue
        if descriptor.editable is False:
            continue
        if not actor_is_role(actor, descriptor.role):
            continue
        result[key] = value

    dropped = set(data) - set(result)
    if dropped:
        logger.debug("Dropped non-writable keys for %s: %s", entity.name, sorted(dropped))
    return result
