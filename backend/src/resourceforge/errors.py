"""Error taxonomy shared by the resource handlers and the HTTP layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from resourceforge.validation.types import ValidationError


class ResourceError(Exception):
    """Base class for failures surfaced to API callers.

    Attributes:
        kind: Machine-readable error kind (e.g. "unauthorized")
        status_code: HTTP status the routing layer maps this error to
        message: Human-readable message
    """

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}


class Unauthorized(ResourceError):
    """The actor lacks the permission for the requested action."""

    kind = "unauthorized"
    status_code = 403


class ActionNotImplemented(ResourceError):
    kind = "not_implemented"
    status_code = 400


class BadRequest(ResourceError):
    """Malformed query parameters or references to unknown fields."""

    kind = "bad_request"
    status_code = 400


class NotFound(ResourceError):
    kind = "not_found"
    status_code = 404


class ValidationFailed(ResourceError):
    """Raised by the validation service; keeps field-level detail."""

    kind = "validation_failed"
    status_code = 422

    def __init__(self, errors: list[ValidationError], message: str = "Validation failed."):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [e.to_dict() for e in self.errors]
        return result
