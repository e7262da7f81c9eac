"""Core types for write validation.

Two layers run on every create/update:
- Field-level rules generated from descriptors (required, bounds, pattern, options)
- Entity validators registered in code with ``@entity_validator``
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from resourceforge.auth.types import ActorContext
    from resourceforge.metadata.loader import EntityType


class Operation(Enum):
    """The type of operation being validated."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ValidationError:
    """A single validation error.

    Attributes:
        message: Human-readable message
        code: Machine-readable error code (e.g., "REQUIRED")
        field: Field name this error relates to, or None for entity-level errors
    """

    message: str
    code: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
        }


@dataclass
class ValidationContext:
    """Context passed to validators.

    Attributes:
        entity: The entity type being written
        record: The data being validated; for UPDATE the merged record
        operation: CREATE or UPDATE
        actor: The requesting actor, if any
        original: For UPDATE, the stored record before the change
    """

    entity: EntityType
    record: dict[str, Any]
    operation: Operation
    actor: ActorContext | None = None
    original: dict[str, Any] | None = None


# Entity validator signature: async (ValidationContext) -> [ValidationError, ...]
EntityValidatorFn = Callable[[ValidationContext], Awaitable[list[ValidationError]]]
