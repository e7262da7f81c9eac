"""Load entity field-descriptor tables from YAML files."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Row-level action metadata column rendered by the UI, never stored or exported
ACTIONS_FIELD = "_actions"

TIMESTAMP_FIELDS = ("created_at", "updated_at")


def to_display_name(name: str) -> str:
    """Convert snake_case or camelCase to Title Case."""
    result = []
    for i, char in enumerate(name.strip("_")):
        if char == "_":
            result.append(" ")
            continue
        if char.isupper() and i > 0 and result and result[-1] != " ":
            result.append(" ")
        result.append(char)
    return "".join(result).title()


def to_snake_case(name: str) -> str:
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


@dataclass
class ValidationRules:
    required: bool = False
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None


@dataclass
class FieldDescriptor:
    """Per-field metadata driving what can be listed, searched, edited and viewed.

    Absence of a flag means "allowed"; only an explicit ``False`` suppresses a
    field from an action.

    Attributes:
        name: Field key in records
        type: Field type name (see resourceforge.core.types)
        label: Display name; falls back to a title-cased form of the key
        listable: Shown in list results and exports
        searchable: Offered as a search field in the grid
        editable: Accepted from create/update payloads
        viewable: Shown in the detail view
        role: Role required to write (and see in forms) this field
        ref: Related entity reference, ``"<Entity>.<labelField>"``
        select_size: UI hint for search selects
        options: Static or materialized ``{value, label}`` choices
        virtual: Not a stored column (e.g. the row actions field)
        auto: Value filled on create: ``"now"`` or ``"actor.id"``
        rules: Field-level validation rules
    """

    name: str
    type: str = "string"
    label: str | None = None
    listable: bool = True
    searchable: bool = False
    editable: bool = True
    viewable: bool = True
    role: str | None = None
    ref: str | None = None
    select_size: int | None = None
    options: list[dict[str, Any]] | None = None
    virtual: bool = False
    auto: str | None = None
    rules: ValidationRules = field(default_factory=ValidationRules)

    @property
    def display_label(self) -> str:
        return self.label or to_display_name(self.name)

    @property
    def ref_entity(self) -> str | None:
        """Entity name part of ``ref`` (the eager-load relation name)."""
        if not self.ref:
            return None
        return self.ref.split(".", 1)[0]

    @property
    def ref_label_field(self) -> str:
        if self.ref and "." in self.ref:
            return self.ref.split(".", 1)[1]
        return "name"

    def format_value(self, row: dict[str, Any]) -> Any:
        """Render this field of a row for a spreadsheet cell.

        Relation fields use the eager-loaded display value, option fields
        their option label; lists are joined and mappings JSON-encoded.
        """
        value = row.get(self.name)
        if self.ref:
            display = row.get(f"{self.name}_display")
            if display is not None:
                return display
        if self.options and value is not None:
            labels = {str(o.get("value")): o.get("label") for o in self.options}
            if isinstance(value, list):
                return ", ".join(str(labels.get(str(v), v)) for v in value)
            return labels.get(str(value), value)
        if isinstance(value, list):
            return ", ".join(str(v) for v in value)
        if isinstance(value, dict):
            return json.dumps(value, default=str)
        return value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "name": self.name,
            "type": self.type,
            "label": self.display_label,
            "listable": self.listable,
            "searchable": self.searchable,
            "editable": self.editable,
            "viewable": self.viewable,
            "role": self.role,
            "ref": self.ref,
            "selectSize": self.select_size,
            "options": self.options,
            "required": self.rules.required,
        }


# Loads options for one ref field: (field) -> [{value, label}, ...]
OptionLoader = Callable[[FieldDescriptor], Awaitable[list[dict[str, Any]]]]


@dataclass
class EntityType:
    """A registered resource schema: an ordered field-descriptor table."""

    name: str
    fields: dict[str, FieldDescriptor]
    resource: str = ""
    label: str = ""
    plural_label: str = ""
    primary_key: str = "id"
    soft_deletes: bool = False
    stat_field: str | None = None
    label_field: str = "name"

    def __post_init__(self) -> None:
        if not self.resource:
            self.resource = to_snake_case(self.name)
        if not self.label:
            self.label = to_display_name(self.name)
        if not self.plural_label:
            self.plural_label = self.label + "s"

    def listable_fields(self) -> dict[str, FieldDescriptor]:
        return {k: f for k, f in self.fields.items() if f.listable is not False}

    def searchable_fields(self) -> dict[str, FieldDescriptor]:
        return {k: f for k, f in self.fields.items() if f.searchable}

    def viewable_fields(self) -> dict[str, FieldDescriptor]:
        return {
            k: f
            for k, f in self.fields.items()
            if f.viewable is not False and k != ACTIONS_FIELD
        }

    def stored_fields(self) -> dict[str, FieldDescriptor]:
        return {k: f for k, f in self.fields.items() if not f.virtual}

    def has_column(self, name: str) -> bool:
        descriptor = self.fields.get(name)
        return descriptor is not None and not descriptor.virtual

    def labels(self) -> dict[str, Any]:
        """Display labels for the entity and each of its fields."""
        return {
            "entity": self.label,
            "plural": self.plural_label,
            "fields": {k: f.display_label for k, f in self.fields.items()},
        }

    async def build_options(self, load: OptionLoader) -> dict[str, FieldDescriptor]:
        """Materialize computed descriptor data for one request.

        Fields with a ``ref`` and no static options get their choices from
        ``load``. Returns a copy of the field table; the shared descriptors
        are left untouched.
        """
        resolved: dict[str, FieldDescriptor] = {}
        for key, descriptor in self.fields.items():
            if descriptor.ref and descriptor.options is None:
                resolved[key] = replace(descriptor, options=await load(descriptor))
            else:
                resolved[key] = descriptor
        return resolved


class MetadataLoader:
    """Loads entity definitions from YAML files."""

    def __init__(self, metadata_path: Path):
        self.metadata_path = metadata_path
        self.entities: dict[str, EntityType] = {}

    def load_all(self) -> None:
        """Load all entities and check cross-entity references."""
        self._load_entities()
        self._validate_references()

    def _load_entities(self) -> None:
        entities_path = self.metadata_path / "entities"
        if not entities_path.exists():
            logger.warning("No entities directory at %s", entities_path)
            return

        for yaml_file in sorted(entities_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
                if data and "entity" in data:
                    entity = self.resolve_entity(data)
                    self.entities[entity.name] = entity
                    logger.debug("Loaded entity %s from %s", entity.name, yaml_file.name)

    def _validate_references(self) -> None:
        """Validate resource slugs are unique and refs point at known entities."""
        seen: dict[str, str] = {}  # resource -> entity name

        for entity_name, entity in self.entities.items():
            if entity.resource in seen:
                raise ValueError(
                    f"Duplicate resource '{entity.resource}' used by both "
                    f"'{seen[entity.resource]}' and '{entity_name}'"
                )
            seen[entity.resource] = entity_name

            if entity.primary_key not in entity.fields:
                raise ValueError(
                    f"Entity '{entity_name}' has no field for primary key '{entity.primary_key}'"
                )

            for descriptor in entity.fields.values():
                target = descriptor.ref_entity
                if target and target not in self.entities:
                    raise ValueError(
                        f"Field '{entity_name}.{descriptor.name}' references "
                        f"unknown entity '{target}'"
                    )

    def resolve_entity(self, data: dict) -> EntityType:
        """Convert an entity dict (YAML document) to an EntityType."""
        name = data["entity"]

        fields: dict[str, FieldDescriptor] = {}
        for field_data in data.get("fields", []):
            descriptor = self._resolve_field(field_data)
            fields[descriptor.name] = descriptor

        return EntityType(
            name=name,
            fields=fields,
            resource=data.get("resource", ""),
            label=data.get("label", ""),
            plural_label=data.get("pluralLabel", ""),
            primary_key=data.get("primaryKey", "id"),
            soft_deletes=data.get("softDeletes", False),
            stat_field=data.get("statField"),
            label_field=data.get("labelField", "name"),
        )

    def _resolve_field(self, data: dict) -> FieldDescriptor:
        """Convert field dict to FieldDescriptor."""
        name = data["name"]

        validation_data = data.get("validation", {})
        rules = ValidationRules(
            required=validation_data.get("required", False),
            min=validation_data.get("min"),
            max=validation_data.get("max"),
            min_length=validation_data.get("minLength"),
            max_length=validation_data.get("maxLength"),
            pattern=validation_data.get("pattern"),
        )

        options = data.get("options")
        if options is not None:
            options = [self._resolve_option(o) for o in options]

        return FieldDescriptor(
            name=name,
            type=data.get("type", "string"),
            label=data.get("label"),
            listable=data.get("listable", True),
            searchable=data.get("searchable", False),
            editable=data.get("editable", True),
            viewable=data.get("viewable", True),
            role=data.get("role"),
            ref=data.get("ref"),
            select_size=data.get("selectSize"),
            options=options,
            virtual=data.get("virtual", name == ACTIONS_FIELD),
            auto=data.get("auto"),
            rules=rules,
        )

    def _resolve_option(self, option: Any) -> dict[str, Any]:
        """Accept either ``{value, label}`` mappings or bare values."""
        if isinstance(option, dict):
            value = option.get("value")
            return {"value": value, "label": option.get("label", str(value))}
        return {"value": option, "label": str(option)}

    def get_entity(self, name: str) -> EntityType | None:
        """Get a resolved entity by name."""
        return self.entities.get(name)

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return list(self.entities.keys())
