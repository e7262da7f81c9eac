"""SQL storage engine built on SQLAlchemy Core.

Works against SQLite (default) and PostgreSQL (``postgresql+psycopg://``).
Tables are derived from entity metadata:

  - table name is the snake_case entity name
  - one column per stored field, typed from ``resourceforge.core.types``
  - a nullable ``deleted_at`` column when the entity has ``soft_deletes``

Every statement is built with SQLAlchemy expressions, so identifiers are
quoted by the dialect and values are always bound parameters.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import (
    Column,
    MetaData,
    Table,
    Text,
    and_,
    create_engine,
    delete,
    false,
    func,
    insert,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import ColumnElement

from resourceforge.core.types import get_storage_type
from resourceforge.metadata.loader import EntityType, to_snake_case
from resourceforge.persistence.adapter import EntityResolver

logger = logging.getLogger(__name__)

SOFT_DELETE_COLUMN = "deleted_at"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLAdapter:
    """SQLAlchemy Core storage engine."""

    def __init__(self, url: str):
        self.url = url
        self.engine: Engine | None = None
        self.metadata = MetaData()
        self._tables: dict[str, Table] = {}

    def connect(self) -> None:
        """Create the engine. In-memory SQLite shares a single connection."""
        url = make_url(self.url)
        kwargs: dict[str, Any] = {}
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.url, **kwargs)
        logger.info("Connected storage engine (%s)", url.get_backend_name())

    def close(self) -> None:
        if self.engine:
            self.engine.dispose()
            self.engine = None

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def initialize_entity(self, entity: EntityType) -> None:
        """Create the table for an entity if it doesn't exist."""
        if not self.engine:
            raise RuntimeError("Database not connected")

        columns = []
        for descriptor in entity.stored_fields().values():
            column_type = get_storage_type(descriptor.type)
            columns.append(
                Column(
                    descriptor.name,
                    column_type(),
                    primary_key=descriptor.name == entity.primary_key,
                )
            )
        if entity.soft_deletes and not entity.has_column(SOFT_DELETE_COLUMN):
            columns.append(Column(SOFT_DELETE_COLUMN, Text, nullable=True))

        table = Table(to_snake_case(entity.name), self.metadata, *columns, extend_existing=True)
        table.create(self.engine, checkfirst=True)
        self._tables[entity.name] = table

    def _table(self, entity: EntityType) -> Table:
        table = self._tables.get(entity.name)
        if table is None:
            raise RuntimeError(f"Entity '{entity.name}' is not initialized")
        return table

    def _column(self, table: Table, name: str) -> ColumnElement:
        column = table.c.get(name)
        if column is None:
            raise ValueError(f"Unknown column '{name}' on table '{table.name}'")
        return column

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, entity: EntityType, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record.

        Generates a uuid4 hex primary key when none is given and fills
        ``created_at``/``updated_at`` when the entity declares them.

        Returns:
            The created record as stored
        """
        table = self._table(entity)
        values = dict(data)

        pk = entity.primary_key
        if values.get(pk) is None:
            values[pk] = uuid.uuid4().hex

        now = _now()
        for name in ("created_at", "updated_at"):
            if entity.has_column(name):
                values.setdefault(name, now)

        for name in values:
            self._column(table, name)

        with self.engine.begin() as conn:
            conn.execute(insert(table).values(**values))

        return self.get(entity, values[pk], with_trash=True)  # type: ignore[return-value]

    def get(
        self, entity: EntityType, id: str, with_trash: bool = False
    ) -> dict[str, Any] | None:
        """Fetch a single record by primary key."""
        table = self._table(entity)
        stmt = select(table).where(self._column(table, entity.primary_key) == id)
        stmt = self._trash_scope(stmt, entity, table, with_trash)

        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row else None

    def update(
        self, entity: EntityType, id: str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Update an existing record and return it as stored."""
        table = self._table(entity)
        values = {k: v for k, v in data.items() if k != entity.primary_key}
        if entity.has_column("updated_at"):
            values["updated_at"] = _now()

        for name in values:
            self._column(table, name)

        if values:
            pk_column = self._column(table, entity.primary_key)
            with self.engine.begin() as conn:
                conn.execute(update(table).where(pk_column == id).values(**values))

        return self.get(entity, id, with_trash=True)

    def delete(self, entity: EntityType, id: str) -> bool:
        """Delete a record, or mark it deleted for soft-deleting entities."""
        table = self._table(entity)
        pk_column = self._column(table, entity.primary_key)

        if entity.soft_deletes:
            stmt = (
                update(table)
                .where(pk_column == id, table.c[SOFT_DELETE_COLUMN].is_(None))
                .values({SOFT_DELETE_COLUMN: _now()})
            )
        else:
            stmt = delete(table).where(pk_column == id)

        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount > 0

    def delete_where(self, entity: EntityType, filter: dict | None = None) -> int:
        """Delete every row matching ``filter`` in a single statement.

        Returns:
            Number of rows deleted (or marked deleted)
        """
        table = self._table(entity)
        clause = self._where(table, filter)

        if entity.soft_deletes:
            deleted_at = table.c[SOFT_DELETE_COLUMN]
            stmt = update(table).where(deleted_at.is_(None)).values({SOFT_DELETE_COLUMN: _now()})
        else:
            stmt = delete(table)
        if clause is not None:
            stmt = stmt.where(clause)

        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        logger.info("Deleted %d %s rows", result.rowcount, entity.name)
        return result.rowcount

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(
        self,
        entity: EntityType,
        fields: list[str] | None = None,
        filter: dict | None = None,
        sort: list[dict] | None = None,
        limit: int | None = None,
        offset: int = 0,
        with_trash: bool = False,
    ) -> list[dict[str, Any]]:
        """Query records with filtering, sorting and pagination."""
        table = self._table(entity)

        if fields:
            stmt = select(*[self._column(table, name) for name in fields])
        else:
            stmt = select(table)

        clause = self._where(table, filter)
        if clause is not None:
            stmt = stmt.where(clause)
        stmt = self._trash_scope(stmt, entity, table, with_trash)

        for s in sort or []:
            column = self._column(table, s["field"])
            stmt = stmt.order_by(column.desc() if s.get("direction") == "desc" else column.asc())

        if limit:
            stmt = stmt.limit(limit).offset(offset)

        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def count(
        self, entity: EntityType, filter: dict | None = None, with_trash: bool = False
    ) -> int:
        table = self._table(entity)
        stmt = select(func.count()).select_from(table)

        clause = self._where(table, filter)
        if clause is not None:
            stmt = stmt.where(clause)
        stmt = self._trash_scope(stmt, entity, table, with_trash)

        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def grouped_count(
        self, entity: EntityType, field: str, filter: dict | None = None
    ) -> list[dict[str, Any]]:
        """Count rows per distinct value of ``field``.

        Returns:
            ``[{"key": value, "count": n}, ...]`` ordered by key
        """
        table = self._table(entity)
        column = self._column(table, field)
        stmt = select(column.label("key"), func.count().label("count")).group_by(column)

        clause = self._where(table, filter)
        if clause is not None:
            stmt = stmt.where(clause)
        stmt = self._trash_scope(stmt, entity, table, False).order_by(column)

        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def fetch_options(
        self,
        entity: EntityType,
        value_field: str,
        text_fields: list[str],
        filter: dict | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch ``{value, label}`` pairs; the label joins the text fields with a space."""
        table = self._table(entity)
        value_column = self._column(table, value_field).label("_value")
        text_columns = [self._column(table, name) for name in text_fields]
        stmt = select(value_column, *text_columns)

        clause = self._where(table, filter)
        if clause is not None:
            stmt = stmt.where(clause)
        stmt = self._trash_scope(stmt, entity, table, False).order_by(*text_columns)
        if limit:
            stmt = stmt.limit(limit)

        options = []
        with self.engine.connect() as conn:
            for row in conn.execute(stmt).mappings():
                parts = [str(row[name]) for name in text_fields if row[name] is not None]
                options.append({"value": row["_value"], "label": " ".join(parts)})
        return options

    # ------------------------------------------------------------------
    # Relation hydration
    # ------------------------------------------------------------------

    def hydrate_relations(
        self,
        records: list[dict[str, Any]],
        entity: EntityType,
        relations: list[str],
        resolve: EntityResolver,
    ) -> list[dict[str, Any]]:
        """Add ``<field>_display`` values for ref fields of the named relations."""
        if not records or not relations:
            return records

        for descriptor in entity.fields.values():
            if descriptor.virtual or descriptor.ref_entity not in relations:
                continue

            related = resolve(descriptor.ref_entity)
            if related is None:
                logger.warning(
                    "Relation %s on %s.%s is not registered",
                    descriptor.ref_entity,
                    entity.name,
                    descriptor.name,
                )
                continue

            ids = list({r[descriptor.name] for r in records if r.get(descriptor.name) is not None})
            display_key = f"{descriptor.name}_display"
            if not ids:
                for record in records:
                    record[display_key] = None
                continue

            label_field = descriptor.ref_label_field
            if not related.has_column(label_field):
                label_field = related.label_field
            display_map = self._lookup_display_values(related, ids, label_field)

            for record in records:
                record[display_key] = display_map.get(record.get(descriptor.name))

        return records

    def _lookup_display_values(
        self, entity: EntityType, ids: list[Any], display_field: str
    ) -> dict[Any, Any]:
        table = self._table(entity)
        pk_column = self._column(table, entity.primary_key)
        stmt = select(
            pk_column.label("id"), self._column(table, display_field).label("_display")
        ).where(pk_column.in_(ids))

        with self.engine.connect() as conn:
            return {row["id"]: row["_display"] for row in conn.execute(stmt).mappings()}

    # ------------------------------------------------------------------
    # Filter compilation
    # ------------------------------------------------------------------

    def _trash_scope(self, stmt, entity: EntityType, table: Table, with_trash: bool):
        if entity.soft_deletes and not with_trash:
            stmt = stmt.where(table.c[SOFT_DELETE_COLUMN].is_(None))
        return stmt

    def _where(self, table: Table, filter: dict | None) -> ColumnElement | None:
        if not filter or not filter.get("conditions"):
            return None
        return self._compile_group(table, filter)

    def _compile_group(self, table: Table, group: dict) -> ColumnElement:
        clauses = []
        for node in group.get("conditions", []):
            if "conditions" in node:
                clauses.append(self._compile_group(table, node))
            else:
                clauses.append(self._build_condition(table, node))

        if group.get("operator", "and").lower() == "or":
            return or_(*clauses) if clauses else false()
        return and_(*clauses) if clauses else true()

    def _build_condition(self, table: Table, cond: dict) -> ColumnElement:
        """Build a SQL expression from a filter condition dict."""
        column = self._column(table, cond["field"])
        op = cond["operator"]
        value = cond.get("value")

        if op == "eq":
            return column == value
        elif op == "neq":
            return column != value
        elif op == "gt":
            return column > value
        elif op == "gte":
            return column >= value
        elif op == "lt":
            return column < value
        elif op == "lte":
            return column <= value
        elif op == "in":
            return column.in_(value)
        elif op == "notIn":
            return column.not_in(value)
        elif op == "contains":
            return column.contains(str(value), autoescape=True)
        elif op == "icontains":
            return column.icontains(str(value), autoescape=True)
        elif op == "startsWith":
            return column.startswith(str(value), autoescape=True)
        elif op == "isNull":
            return column.is_(None)
        elif op == "isNotNull":
            return column.is_not(None)
        elif op == "between":
            return column.between(value[0], value[1])

        raise ValueError(f"Unsupported filter operator '{op}'")
