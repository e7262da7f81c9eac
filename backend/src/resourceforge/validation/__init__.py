"""Write validation: field-level rules plus registered entity validators.

Usage:
    from resourceforge.validation import entity_validator, ValidationError

    @entity_validator("Contact")
    async def email_or_phone(ctx):
        if not ctx.record.get("email") and not ctx.record.get("phone"):
            return [ValidationError("Email or phone is required", "CONTACT_CHANNEL")]
        return []
"""

from resourceforge.validation.field_constraints import (
    FieldConstraintValidator,
    generate_field_validators,
)
from resourceforge.validation.registry import ValidatorRegistry, entity_validator
from resourceforge.validation.service import ValidationService
from resourceforge.validation.types import (
    EntityValidatorFn,
    Operation,
    ValidationContext,
    ValidationError,
)

__all__ = [
    # Types
    "EntityValidatorFn",
    "Operation",
    "ValidationContext",
    "ValidationError",
    # Field rules
    "FieldConstraintValidator",
    "generate_field_validators",
    # Registry
    "ValidatorRegistry",
    "entity_validator",
    # Service
    "ValidationService",
]
