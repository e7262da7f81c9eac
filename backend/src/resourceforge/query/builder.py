"""Turns a QuerySpec plus field metadata into a storage-engine Query."""

from __future__ import annotations

import logging
from typing import Any

from resourceforge.auth.types import ActorContext
from resourceforge.config import Settings
from resourceforge.core.types import get_field_type
from resourceforge.errors import BadRequest
from resourceforge.metadata.loader import FieldDescriptor, EntityType
from resourceforge.query.types import (
    DEFAULT_PER_PAGE,
    Query,
    QuerySpec,
    condition,
    group,
)

logger = logging.getLogger(__name__)


class QueryBuilder:
    """Builds filters, field selections, sorting and pagination.

    Every filter built for an actor passes through ownership scoping: an
    actor holding the scope permission only ever matches rows whose
    ownership field equals its id, whatever the client asked for.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def is_scoped(self, actor: ActorContext | None) -> bool:
        """True when the actor is restricted to its own records."""
        if actor is None or actor.is_system:
            return False
        return actor.has_permission(self.settings.scope_permission)

    def scope_conditions(
        self, entity: EntityType, actor: ActorContext | None
    ) -> list[dict[str, Any]]:
        """Ownership conditions for a scoped actor (empty otherwise)."""
        if not self.is_scoped(actor):
            return []

        field_name = self.settings.restrict_field
        if not entity.has_column(field_name):
            # No ownership column - match nothing rather than everything
            logger.warning(
                "Scoped actor %s on %s which has no '%s' field",
                actor.user_id,
                entity.name,
                field_name,
            )
            return [condition(entity.primary_key, "isNull")]

        return [condition(field_name, "eq", str(actor.user_id))]

    def where_conditions(self, entity: EntityType, where: dict[str, Any]) -> list[dict[str, Any]]:
        """Convert a client ``where`` mapping into explicit conditions.

        ``{field: value}`` is equality, a list value is membership, ``None``
        is a null check, and ``{field: {op: value}}`` uses an explicit
        operator supported by the field's type.

        Raises:
            BadRequest: For unknown fields or unsupported operators
        """
        conditions: list[dict[str, Any]] = []
        for key, value in where.items():
            descriptor = self._stored_field(entity, key)
            if isinstance(value, dict):
                for op, operand in value.items():
                    conditions.append(self._operator_condition(descriptor, op, operand))
            elif isinstance(value, list):
                conditions.append(condition(key, "in", value))
            elif value is None:
                conditions.append(condition(key, "isNull"))
            else:
                conditions.append(condition(key, "eq", value))
        return conditions

    def build_filter(
        self,
        entity: EntityType,
        where: dict[str, Any],
        actor: ActorContext | None,
    ) -> dict[str, Any]:
        """Client constraints AND ownership scoping.

        A scoped actor's own constraint on the ownership field is discarded
        before the injected one is added.
        """
        if self.is_scoped(actor):
            where = {k: v for k, v in where.items() if k != self.settings.restrict_field}
        return group(self.where_conditions(entity, where) + self.scope_conditions(entity, actor))

    def text_search_filter(
        self,
        entity: EntityType,
        text: str,
        where: dict[str, Any],
        actor: ActorContext | None,
    ) -> dict[str, Any]:
        """Filter for autocomplete lookups.

        ``text`` names one or more space-separated fields. A ``where`` entry
        keyed by that exact string becomes a case-insensitive substring OR
        across every text field, replacing the literal constraint.
        """
        text_fields = text.split()
        for name in text_fields:
            self._stored_field(entity, name)

        remaining = dict(where)
        conditions: list[dict[str, Any]] = []
        term = remaining.get(text)
        if term is not None and not isinstance(term, (dict, list)):
            del remaining[text]
            conditions.append(
                group([condition(name, "icontains", str(term)) for name in text_fields], "or")
            )

        base = self.build_filter(entity, remaining, actor)
        return group(conditions + base["conditions"])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def build_list(
        self,
        entity: EntityType,
        spec: QuerySpec,
        actor: ActorContext | None,
    ) -> Query:
        """Paginated query over the listable fields."""
        page = max(spec.page, 1)
        per_page = spec.per_page if spec.per_page >= 1 else DEFAULT_PER_PAGE
        per_page = min(per_page, self.settings.max_per_page)

        return Query(
            fields=self._select_fields(entity.listable_fields()),
            filter=self.build_filter(entity, spec.where, actor),
            sort=self._sort(entity, spec.sort),
            offset=(page - 1) * per_page,
            limit=per_page,
            relations=self._relations(entity, spec.with_),
            with_trash=spec.with_trash,
            page=page,
            per_page=per_page,
        )

    def build_export(
        self,
        entity: EntityType,
        spec: QuerySpec,
        actor: ActorContext | None,
        columns: dict[str, FieldDescriptor],
    ) -> Query:
        """Unpaginated query; relations referenced by the columns are eager-loaded."""
        relations = self._relations(entity, spec.with_)
        for descriptor in columns.values():
            target = descriptor.ref_entity
            if target and target not in relations:
                relations.append(target)

        return Query(
            fields=self._select_fields(columns),
            filter=self.build_filter(entity, spec.where, actor),
            sort=self._sort(entity, spec.sort),
            relations=relations,
            with_trash=spec.with_trash,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _stored_field(self, entity: EntityType, name: str) -> FieldDescriptor:
        descriptor = entity.fields.get(name)
        if descriptor is None or descriptor.virtual:
            raise BadRequest(f"Unknown field '{name}' on {entity.name}")
        return descriptor

    def _operator_condition(
        self, descriptor: FieldDescriptor, op: str, operand: Any
    ) -> dict[str, Any]:
        allowed = get_field_type(descriptor.type).query_operators
        if op not in allowed:
            raise BadRequest(
                f"Operator '{op}' is not supported for field '{descriptor.name}'. "
                f"Allowed: {', '.join(allowed)}"
            )
        if op in ("in", "notIn") and not isinstance(operand, list):
            raise BadRequest(f"Operator '{op}' expects a list for field '{descriptor.name}'")
        if op == "between" and (not isinstance(operand, list) or len(operand) != 2):
            raise BadRequest(f"Operator 'between' expects two values for field '{descriptor.name}'")
        return condition(descriptor.name, op, operand)

    def _select_fields(self, fields: dict[str, FieldDescriptor]) -> list[str]:
        return [key for key, descriptor in fields.items() if not descriptor.virtual]

    def _sort(self, entity: EntityType, keys: list[str]) -> list[dict[str, str]]:
        result = []
        for key in keys:
            direction = "desc" if key.startswith("-") else "asc"
            name = key.lstrip("-+")
            descriptor = self._stored_field(entity, name)
            if descriptor.listable is False:
                raise BadRequest(f"Cannot sort by unlisted field '{name}'")
            result.append({"field": name, "direction": direction})
        return result

    def _relations(self, entity: EntityType, names: list[str]) -> list[str]:
        """Validate eager-load names against the entity's ref fields, deduplicated."""
        available = {d.ref_entity for d in entity.fields.values() if d.ref_entity}
        relations: list[str] = []
        for name in names:
            if name not in available:
                raise BadRequest(f"Unknown relation '{name}' on {entity.name}")
            if name not in relations:
                relations.append(name)
        return relations
