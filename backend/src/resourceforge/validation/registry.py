"""Entity validator registry.

Application code registers async validators per entity name; they run after
the field-level rules on every create and update.
"""

from collections.abc import Callable

from resourceforge.validation.types import EntityValidatorFn


class ValidatorRegistry:
    """Registry of entity-level validators.

    Example:
        @entity_validator("Contact")
        async def email_or_phone(ctx: ValidationContext) -> list[ValidationError]:
            ...
    """

    _validators: dict[str, list[EntityValidatorFn]] = {}

    @classmethod
    def register(cls, entity_name: str, validator_fn: EntityValidatorFn) -> None:
        """Register a validator for an entity.

        Idempotent - registering the same function twice is a no-op.
        """
        registered = cls._validators.setdefault(entity_name, [])
        if validator_fn not in registered:
            registered.append(validator_fn)

    @classmethod
    def get(cls, entity_name: str) -> list[EntityValidatorFn]:
        """Validators for an entity, in registration order."""
        return list(cls._validators.get(entity_name, []))

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._validators.clear()


def entity_validator(entity_name: str) -> Callable[[EntityValidatorFn], EntityValidatorFn]:
    """Decorator to register an entity validator."""

    def decorator(fn: EntityValidatorFn) -> EntityValidatorFn:
        ValidatorRegistry.register(entity_name, fn)
        return fn

    return decorator
