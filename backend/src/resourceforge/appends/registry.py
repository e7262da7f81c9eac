"""Append registry: computed fields attached to list and export rows.

Appends are looked up by (entity name, append name) and referenced from
the ``appends`` query parameter.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from resourceforge.resources.context import RequestContext

# Append function signature: async (RequestContext, row) -> value
AppendFn = Callable[["RequestContext", dict[str, Any]], Awaitable[Any]]


class AppendRegistry:
    """Registry for computed-field implementations.

    Example:
        @append("Contact", "initials")
        async def contact_initials(ctx: RequestContext, row: dict) -> str:
            ...
    """

    _appends: dict[tuple[str, str], AppendFn] = {}

    @classmethod
    def register(cls, entity_name: str, name: str, append_fn: AppendFn) -> None:
        """Register an append function.

        Idempotent - re-registering the same name is a no-op.
        """
        key = (entity_name, name)
        if key in cls._appends:
            return
        cls._appends[key] = append_fn

    @classmethod
    def get(cls, entity_name: str, name: str) -> AppendFn:
        """Get a registered append function.

        Raises:
            ValueError: If the append is not registered for the entity
        """
        key = (entity_name, name)
        if key not in cls._appends:
            raise ValueError(f"Append '{name}' is not registered for {entity_name}")
        return cls._appends[key]

    @classmethod
    def is_registered(cls, entity_name: str, name: str) -> bool:
        return (entity_name, name) in cls._appends

    @classmethod
    def list_registered(cls, entity_name: str) -> list[str]:
        return sorted(name for entity, name in cls._appends if entity == entity_name)

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._appends.clear()


def append(entity_name: str, name: str) -> Callable[[AppendFn], AppendFn]:
    """Decorator to register an append function.

    Usage:
        @append("Contact", "initials")
        async def contact_initials(ctx, row):
            return "".join(part[:1] for part in row["name"].split())
    """

    def decorator(fn: AppendFn) -> AppendFn:
        AppendRegistry.register(entity_name, name, fn)
        return fn

    return decorator
