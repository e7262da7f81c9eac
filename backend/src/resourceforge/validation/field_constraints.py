"""Field-level constraint validators.

Generated from field descriptors to enforce:
- required: Field must have a non-empty value
- min/max: Numeric bounds
- minLength/maxLength: String length bounds
- pattern: Regex pattern matching
- Type formats: email, url, number, integer, boolean, date, datetime
- Option membership for select fields
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from resourceforge.metadata.loader import FieldDescriptor, ValidationRules
from resourceforge.validation.types import (
    Operation,
    ValidationContext,
    ValidationError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Type-Specific Format Patterns
# =============================================================================

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

URL_PATTERN = re.compile(
    r"^https?://[^\s/$.?#].[^\s]*$",
    re.IGNORECASE
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")

NUMERIC_TYPES = ("number", "integer")
STRING_TYPES = ("string", "text", "email", "url")


# =============================================================================
# Field Constraint Validator
# =============================================================================


@dataclass
class FieldConstraintValidator:
    """Validates a single field against its descriptor rules."""

    field: FieldDescriptor

    async def validate(self, ctx: ValidationContext) -> list[ValidationError]:
        errors: list[ValidationError] = []

        field_name = self.field.name
        value = ctx.record.get(field_name)
        rules = self.field.rules

        # Auto fields get their values from the system on create
        if self.field.auto and ctx.operation == Operation.CREATE:
            return errors

        if rules.required and self._is_empty(value):
            errors.append(ValidationError(
                message=f"{self.field.display_label} is required",
                code="REQUIRED",
                field=field_name,
            ))
            return errors

        if self._is_empty(value):
            return errors

        type_error = self._validate_type_format(value)
        if type_error:
            errors.append(ValidationError(
                message=type_error,
                code=f"INVALID_{self.field.type.upper()}",
                field=field_name,
            ))
            return errors

        if self.field.type in NUMERIC_TYPES:
            errors.extend(self._validate_numeric_bounds(value, rules))

        if self.field.type in STRING_TYPES:
            errors.extend(self._validate_string_length(value, rules))

        if rules.pattern:
            pattern_error = self._validate_pattern(value, rules.pattern)
            if pattern_error:
                errors.append(pattern_error)

        if self.field.type == "select" and self.field.options:
            errors.extend(self._validate_options(value))

        return errors

    def _is_empty(self, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str) and value.strip() == "":
            return True
        if isinstance(value, (list, dict)) and len(value) == 0:
            return True
        return False

    def _validate_type_format(self, value: Any) -> str | None:
        """Validate value against type-specific format. Returns error message or None."""
        field_type = self.field.type
        label = self.field.display_label

        if field_type == "email":
            if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
                return f"{label} must be a valid email address"

        elif field_type == "url":
            if not isinstance(value, str) or not URL_PATTERN.match(value):
                return f"{label} must be a valid URL"

        elif field_type == "number":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                try:
                    float(value)
                except (TypeError, ValueError):
                    return f"{label} must be a number"

        elif field_type == "integer":
            if isinstance(value, bool) or not isinstance(value, int):
                try:
                    int(str(value))
                except ValueError:
                    return f"{label} must be a whole number"

        elif field_type == "boolean":
            if not isinstance(value, bool) and value not in (0, 1, "true", "false"):
                return f"{label} must be a boolean"

        elif field_type == "date":
            if not isinstance(value, str) or not DATE_PATTERN.match(value):
                return f"{label} must be a valid date (YYYY-MM-DD)"

        elif field_type == "datetime":
            if not isinstance(value, str) or not DATETIME_PATTERN.match(value):
                return f"{label} must be a valid datetime"

        elif field_type == "list":
            if not isinstance(value, list):
                return f"{label} must be a list"

        return None

    def _validate_numeric_bounds(
        self, value: Any, rules: ValidationRules
    ) -> list[ValidationError]:
        errors = []
        num_value = float(value)

        if rules.min is not None and num_value < rules.min:
            errors.append(ValidationError(
                message=f"{self.field.display_label} must be at least {rules.min}",
                code="MIN_VALUE",
                field=self.field.name,
            ))

        if rules.max is not None and num_value > rules.max:
            errors.append(ValidationError(
                message=f"{self.field.display_label} must be at most {rules.max}",
                code="MAX_VALUE",
                field=self.field.name,
            ))

        return errors

    def _validate_string_length(
        self, value: Any, rules: ValidationRules
    ) -> list[ValidationError]:
        errors = []

        if not isinstance(value, str):
            return errors

        length = len(value)

        if rules.min_length is not None and length < rules.min_length:
            errors.append(ValidationError(
                message=f"{self.field.display_label} must be at least {rules.min_length} characters",
                code="MIN_LENGTH",
                field=self.field.name,
            ))

        if rules.max_length is not None and length > rules.max_length:
            errors.append(ValidationError(
                message=f"{self.field.display_label} must be at most {rules.max_length} characters",
                code="MAX_LENGTH",
                field=self.field.name,
            ))

        return errors

    def _validate_pattern(self, value: Any, pattern: str) -> ValidationError | None:
        if not isinstance(value, str):
            return None

        try:
            matched = re.match(pattern, value)
        except re.error as e:
            logger.warning("Invalid pattern for field %s: %s", self.field.name, e)
            return None

        if not matched:
            return ValidationError(
                message=f"{self.field.display_label} format is invalid",
                code="PATTERN_MISMATCH",
                field=self.field.name,
            )
        return None

    def _validate_options(self, value: Any) -> list[ValidationError]:
        valid_values = {str(opt.get("value")) for opt in self.field.options or []}
        values = value if isinstance(value, list) else [value]

        return [
            ValidationError(
                message=f"'{v}' is not a valid option for {self.field.display_label}",
                code="INVALID_OPTION",
                field=self.field.name,
            )
            for v in values
            if str(v) not in valid_values
        ]


# =============================================================================
# Field Validator Generator
# =============================================================================

FORMAT_TYPES = {"email", "url", "number", "integer", "boolean", "date", "datetime", "list"}


def generate_field_validators(
    fields: list[FieldDescriptor],
) -> list[FieldConstraintValidator]:
    """Create a validator for each stored field that has any constraint."""
    validators = []

    for descriptor in fields:
        if descriptor.virtual:
            continue
        rules = descriptor.rules

        needs_validation = (
            rules.required
            or rules.min is not None
            or rules.max is not None
            or rules.min_length is not None
            or rules.max_length is not None
            or rules.pattern is not None
            or descriptor.type in FORMAT_TYPES
            or (descriptor.type == "select" and bool(descriptor.options))
        )

        if needs_validation:
            validators.append(FieldConstraintValidator(field=descriptor))

    return validators
