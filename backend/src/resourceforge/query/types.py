"""Request-side query shapes and the paginated result envelope.

Filters handed to the storage engine use one JSON-friendly format:

    {"operator": "and", "conditions": [
        {"field": "status", "operator": "eq", "value": "active"},
        {"operator": "or", "conditions": [...]},
    ]}
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from resourceforge.errors import BadRequest

DEFAULT_PER_PAGE = 20


def condition(field_name: str, operator: str = "eq", value: Any = None) -> dict[str, Any]:
    return {"field": field_name, "operator": operator, "value": value}


def group(conditions: list[dict[str, Any]], operator: str = "and") -> dict[str, Any]:
    return {"operator": operator, "conditions": conditions}


def _split_list(value: str | None) -> list[str]:
    """Parse ``a,b`` or a JSON array into a list of names."""
    if not value:
        return []
    value = value.strip()
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise BadRequest(f"Invalid list parameter: {e}")
        if not isinstance(parsed, list):
            raise BadRequest("List parameter must be a JSON array")
        return [str(v) for v in parsed]
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_int(name: str, value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Parameter '{name}' must be an integer")


def parse_where(raw: str | None) -> dict[str, Any]:
    """Decode a JSON-encoded constraint object (``{}`` when absent)."""
    if not raw:
        return {}
    try:
        where = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadRequest(f"Invalid 'where' parameter: {e}")
    if not isinstance(where, dict):
        raise BadRequest("'where' must be a JSON object")
    return where


@dataclass
class QuerySpec:
    """Inbound list/export request shape.

    Attributes:
        where: Mapping of field -> constraint
        page: 1-indexed page number
        per_page: Page size
        with_: Relation (entity) names to eager-load
        appends: Computed field names to resolve after fetch
        with_trash: Include soft-deleted rows
        sort: Sort keys, ``"-field"`` for descending
    """

    where: dict[str, Any] = field(default_factory=dict)
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    with_: list[str] = field(default_factory=list)
    appends: list[str] = field(default_factory=list)
    with_trash: bool = False
    sort: list[str] = field(default_factory=list)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> QuerySpec:
        """Build a QuerySpec from HTTP query parameters.

        Raises:
            BadRequest: On malformed JSON or integers
        """
        with_trash = str(params.get("withTrash", "")).lower() in ("1", "true", "yes")
        return cls(
            where=parse_where(params.get("where")),
            page=parse_int("page", params.get("page"), 1),
            per_page=parse_int("perPage", params.get("perPage"), DEFAULT_PER_PAGE),
            with_=_split_list(params.get("with")),
            appends=_split_list(params.get("appends")),
            with_trash=with_trash,
            sort=_split_list(params.get("sort")),
        )


@dataclass
class Query:
    """A storage-engine query built from a QuerySpec and field metadata."""

    fields: list[str]
    filter: dict[str, Any]
    sort: list[dict[str, str]] = field(default_factory=list)
    offset: int = 0
    limit: int | None = None
    relations: list[str] = field(default_factory=list)
    with_trash: bool = False
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE


@dataclass
class ResultPage:
    page: int
    per_page: int
    total: int
    data: list[dict[str, Any]]

    @property
    def last_page(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "perPage": self.per_page,
            "total": self.total,
            "lastPage": self.last_page,
            "data": self.data,
        }
