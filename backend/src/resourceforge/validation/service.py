"""Validation service run by the mutation handlers before persisting."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from resourceforge.auth.types import ActorContext
from resourceforge.errors import ValidationFailed
from resourceforge.metadata.loader import EntityType
from resourceforge.validation.field_constraints import generate_field_validators
from resourceforge.validation.registry import ValidatorRegistry
from resourceforge.validation.types import (
    Operation,
    ValidationContext,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ValidationService:
    """Runs field-level rules and registered entity validators.

    All validators run concurrently and every error is collected before
    failing, so the caller sees all problems at once.
    """

    async def validate(
        self,
        entity: EntityType,
        payload: dict[str, Any],
        operation: Operation,
        actor: ActorContext | None = None,
        original: dict[str, Any] | None = None,
    ) -> None:
        """Validate a write.

        For UPDATE the payload is checked against the record it produces
        (``original`` merged with ``payload``); for CREATE against the
        payload alone.

        Raises:
            ValidationFailed: With every field- and entity-level error
        """
        record = {**(original or {}), **payload}
        ctx = ValidationContext(
            entity=entity,
            record=record,
            operation=operation,
            actor=actor,
            original=original,
        )

        field_validators = generate_field_validators(list(entity.fields.values()))
        tasks = [v.validate(ctx) for v in field_validators]
        tasks += [fn(ctx) for fn in ValidatorRegistry.get(entity.name)]
        if not tasks:
            return

        errors: list[ValidationError] = []
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Validator failed for %s: %s", entity.name, result)
                errors.append(ValidationError(
                    message=f"Validator error: {result}",
                    code="VALIDATOR_ERROR",
                ))
            else:
                errors.extend(result)

        if errors:
            logger.info(
                "Validation failed for %s %s: %s",
                operation.value,
                entity.name,
                [e.code for e in errors],
            )
            raise ValidationFailed(errors)
