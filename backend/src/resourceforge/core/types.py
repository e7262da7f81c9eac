"""Field type registry with storage columns and filter operators."""

from dataclasses import dataclass

from sqlalchemy import JSON, Boolean, Float, Integer, Text
from sqlalchemy.types import TypeEngine


@dataclass
class FieldType:
    name: str
    storage_type: type[TypeEngine]
    query_operators: list[str]


_COMPARABLE = ["eq", "neq", "gt", "gte", "lt", "lte", "in", "notIn", "between", "isNull", "isNotNull"]
_TEXTUAL = ["eq", "neq", "in", "notIn", "contains", "icontains", "startsWith", "isNull", "isNotNull"]


# Built-in field types
FIELD_TYPES: dict[str, FieldType] = {
    "id": FieldType(
        name="id",
        storage_type=Text,  # uuid4 hex, generated on create
        query_operators=["eq", "neq", "in", "notIn", "isNull", "isNotNull"],
    ),
    "string": FieldType(name="string", storage_type=Text, query_operators=_TEXTUAL),
    "text": FieldType(
        name="text",
        storage_type=Text,
        query_operators=["contains", "icontains", "isNull", "isNotNull"],
    ),
    "email": FieldType(name="email", storage_type=Text, query_operators=_TEXTUAL),
    "url": FieldType(name="url", storage_type=Text, query_operators=_TEXTUAL),
    "select": FieldType(
        name="select",
        storage_type=Text,
        query_operators=["eq", "neq", "in", "notIn", "icontains", "isNull", "isNotNull"],
    ),
    "relation": FieldType(
        name="relation",
        storage_type=Text,  # Stores the related record's primary key
        query_operators=["eq", "neq", "in", "notIn", "isNull", "isNotNull"],
    ),
    "number": FieldType(name="number", storage_type=Float, query_operators=_COMPARABLE),
    "integer": FieldType(name="integer", storage_type=Integer, query_operators=_COMPARABLE),
    "boolean": FieldType(
        name="boolean",
        storage_type=Boolean,
        query_operators=["eq", "neq", "isNull", "isNotNull"],
    ),
    "date": FieldType(name="date", storage_type=Text, query_operators=_COMPARABLE),  # ISO format
    "datetime": FieldType(name="datetime", storage_type=Text, query_operators=_COMPARABLE),
    "list": FieldType(
        name="list",
        storage_type=JSON,
        query_operators=["isNull", "isNotNull"],
    ),
    "json": FieldType(
        name="json",
        storage_type=JSON,
        query_operators=["isNull", "isNotNull"],
    ),
}


def get_field_type(type_name: str) -> FieldType:
    """Get field type definition, defaulting to string if unknown."""
    return FIELD_TYPES.get(type_name, FIELD_TYPES["string"])


def get_storage_type(type_name: str) -> type[TypeEngine]:
    """Get the SQLAlchemy column type for a field type."""
    return get_field_type(type_name).storage_type
