"""Generic resource handlers.

One handler set serves every registered entity type. Each handler takes a
RequestContext; guarded handlers check ``<resource>.<action>`` before any
storage access. Handlers return plain data (or an ExportFile) and raise
ResourceError subclasses; mapping to HTTP is left to the routing layer.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from resourceforge.appends.service import AppendService
from resourceforge.auth.permissions import actor_is_role, guard, writable_payload
from resourceforge.config import Settings
from resourceforge.errors import ActionNotImplemented, BadRequest, NotFound, Unauthorized
from resourceforge.metadata.loader import (
    ACTIONS_FIELD,
    TIMESTAMP_FIELDS,
    EntityType,
    FieldDescriptor,
)
from resourceforge.metadata.registry import EntityRegistry
from resourceforge.persistence.adapter import StorageEngine
from resourceforge.query.builder import QueryBuilder
from resourceforge.query.types import Query, ResultPage, parse_int, parse_where
from resourceforge.resources.context import RequestContext
from resourceforge.resources.export import ExportFile, SpreadsheetExporter
from resourceforge.validation.service import ValidationService
from resourceforge.validation.types import Operation

logger = logging.getLogger(__name__)

# Chart colors for stat; group i gets STAT_PALETTE[i % len(STAT_PALETTE)]
STAT_PALETTE = ["#41B883", "#E46651", "#00D8FF", "#DD1B16"]

MAX_SELECT_SIZE = 5
DEFAULT_OPTION_LIMIT = 10


def _fields_dict(fields: dict[str, FieldDescriptor]) -> dict[str, dict[str, Any]]:
    return {key: descriptor.to_dict() for key, descriptor in fields.items()}


class ResourceHandlers:
    """CRUD, listing, export, search and aggregation for any entity type."""

    def __init__(
        self,
        storage: StorageEngine,
        registry: EntityRegistry,
        settings: Settings,
        builder: QueryBuilder | None = None,
        validation: ValidationService | None = None,
        appends: AppendService | None = None,
        exporter: SpreadsheetExporter | None = None,
    ):
        self.storage = storage
        self.registry = registry
        self.settings = settings
        self.builder = builder or QueryBuilder(settings)
        self.validation = validation or ValidationService()
        self.appends = appends or AppendService()
        self.exporter = exporter or SpreadsheetExporter(settings.export_dir)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _guard(self, ctx: RequestContext, action: str) -> None:
        guard(ctx.actor, ctx.permission(action), allow_anonymous=self.settings.allow_anonymous)

    async def _load_ref_options(self, descriptor: FieldDescriptor) -> list[dict[str, Any]]:
        """Option list for a ref field, read from the related entity."""
        related = self.registry.get(descriptor.ref_entity or "")
        if related is None:
            return []

        label_field = descriptor.ref_label_field
        if not related.has_column(label_field):
            label_field = related.label_field
        return self.storage.fetch_options(
            related,
            related.primary_key,
            [label_field],
            limit=self.settings.option_limit,
        )

    async def _fields(self, entity: EntityType) -> dict[str, FieldDescriptor]:
        return await entity.build_options(self._load_ref_options)

    def _fetch(self, ctx: RequestContext, query: Query) -> list[dict[str, Any]]:
        rows = self.storage.query(
            ctx.entity,
            fields=query.fields,
            filter=query.filter,
            sort=query.sort,
            limit=query.limit,
            offset=query.offset,
            with_trash=query.with_trash,
        )
        return self.storage.hydrate_relations(
            rows, ctx.entity, query.relations, self.registry.get
        )

    def _record_id(self, ctx: RequestContext) -> Any:
        if ctx.record is None:
            raise BadRequest("No record resolved for this request")
        return ctx.record[ctx.entity.primary_key]

    def _apply_auto_fields(self, ctx: RequestContext, payload: dict[str, Any]) -> dict[str, Any]:
        """Fill ``auto`` fields on create; these override any client value."""
        result = dict(payload)
        for key, descriptor in ctx.entity.fields.items():
            if descriptor.auto == "now":
                result[key] = datetime.now(timezone.utc).isoformat()
            elif descriptor.auto == "actor.id":
                result[key] = ctx.actor.user_id if ctx.actor else None
        return result

    # ------------------------------------------------------------------
    # List / export
    # ------------------------------------------------------------------

    async def index(self, ctx: RequestContext) -> ResultPage:
        """Paginated list of listable fields, with relations and appends."""
        self._guard(ctx, "index")

        query = self.builder.build_list(ctx.entity, ctx.query, ctx.actor)
        rows = self._fetch(ctx, query)
        total = self.storage.count(ctx.entity, query.filter, with_trash=query.with_trash)
        rows = await self.appends.resolve(ctx, rows, ctx.query.appends)

        return ResultPage(page=query.page, per_page=query.per_page, total=total, data=rows)

    async def export(self, ctx: RequestContext) -> ExportFile:
        """Write every matching row to a spreadsheet, header row first."""
        self._guard(ctx, "export")

        fields = await self._fields(ctx.entity)
        columns = {
            key: descriptor
            for key, descriptor in fields.items()
            if descriptor.listable is not False and key != ACTIONS_FIELD
        }

        query = self.builder.build_export(ctx.entity, ctx.query, ctx.actor, columns)
        rows = self._fetch(ctx, query)
        rows = await self.appends.resolve(ctx, rows, ctx.query.appends)

        table = [[descriptor.display_label for descriptor in columns.values()]]
        for row in rows:
            table.append([descriptor.format_value(row) for descriptor in columns.values()])

        timestamp = datetime.now().strftime("%Y-%m-%d %H-%M-%S")
        return self.exporter.write(table, f"{ctx.entity.label}-{timestamp}.xlsx")

    async def import_(self, ctx: RequestContext) -> None:
        self._guard(ctx, "import")
        raise ActionNotImplemented("Not implemented.")

    # ------------------------------------------------------------------
    # Field-set projections
    # ------------------------------------------------------------------

    async def grid(self, ctx: RequestContext) -> dict[str, Any]:
        """Search fields, a blank search model and the listable fields."""
        fields = await self._fields(ctx.entity)

        search_fields = {}
        for key in ctx.entity.searchable_fields():
            descriptor = fields[key]
            if descriptor.select_size:
                descriptor = replace(
                    descriptor, select_size=min(descriptor.select_size, MAX_SELECT_SIZE)
                )
            search_fields[key] = descriptor

        listable = {key: fields[key] for key in ctx.entity.listable_fields()}
        return {
            "searchFields": _fields_dict(search_fields),
            "searchModel": {key: None for key in search_fields},
            "fields": _fields_dict(listable),
        }

    async def form(self, ctx: RequestContext) -> dict[str, Any]:
        """Editable fields the actor may write, plus labels and the record."""
        fields = await self._fields(ctx.entity)
        ignored = {ctx.entity.primary_key, ACTIONS_FIELD, *TIMESTAMP_FIELDS}

        editable = {
            key: descriptor
            for key, descriptor in fields.items()
            if descriptor.editable is not False
            and key not in ignored
            and actor_is_role(ctx.actor, descriptor.role)
        }
        return {
            "labels": ctx.entity.labels(),
            "fields": _fields_dict(editable),
            "model": ctx.record,
        }

    async def view(self, ctx: RequestContext) -> dict[str, Any]:
        self._guard(ctx, "view")

        fields = await self._fields(ctx.entity)
        viewable = {key: fields[key] for key in ctx.entity.viewable_fields()}
        return {
            "labels": ctx.entity.labels(),
            "fields": _fields_dict(viewable),
            "model": ctx.record,
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def store(self, ctx: RequestContext) -> dict[str, Any]:
        self._guard(ctx, "create")

        payload = writable_payload(ctx.params, ctx.entity, ctx.actor)
        payload = self._apply_auto_fields(ctx, payload)
        await self.validation.validate(ctx.entity, payload, Operation.CREATE, ctx.actor)

        record = self.storage.create(ctx.entity, payload)
        logger.info("Created %s %s", ctx.entity.name, record.get(ctx.entity.primary_key))
        return record

    async def show(self, ctx: RequestContext) -> dict[str, Any] | None:
        return ctx.record

    async def update(self, ctx: RequestContext) -> dict[str, Any]:
        self._guard(ctx, "update")

        record_id = self._record_id(ctx)
        payload = writable_payload(ctx.params, ctx.entity, ctx.actor)
        await self.validation.validate(
            ctx.entity, payload, Operation.UPDATE, ctx.actor, original=ctx.record
        )

        record = self.storage.update(ctx.entity, record_id, payload)
        if record is None:
            raise NotFound("Record not found")
        logger.info("Updated %s %s", ctx.entity.name, record_id)
        return record

    async def destroy(self, ctx: RequestContext) -> dict[str, Any]:
        self._guard(ctx, "delete")

        record_id = self._record_id(ctx)
        self.storage.delete(ctx.entity, record_id)
        logger.info("Deleted %s %s", ctx.entity.name, record_id)
        return {"success": True}

    async def destroy_all(self, ctx: RequestContext) -> dict[str, Any]:
        """Delete every row matching ``where`` in one statement."""
        self._guard(ctx, "delete_all")

        filter = self.builder.build_filter(ctx.entity, ctx.query.where, ctx.actor)
        deleted = self.storage.delete_where(ctx.entity, filter)
        return {"success": True, "deleted": deleted}

    # ------------------------------------------------------------------
    # Search / aggregation
    # ------------------------------------------------------------------

    async def options(self, ctx: RequestContext) -> list[dict[str, Any]]:
        """Autocomplete lookup returning ``{value, label}`` pairs."""
        params = ctx.params
        text = str(params.get("text") or "name")
        value = str(params.get("value") or ctx.entity.primary_key)
        where = params.get("where")
        if not isinstance(where, dict):
            where = parse_where(where)
        limit = parse_int("limit", params.get("limit"), DEFAULT_OPTION_LIMIT)
        limit = min(max(limit, 1), self.settings.max_per_page)

        if not ctx.entity.has_column(value):
            raise BadRequest(f"Unknown field '{value}' on {ctx.entity.name}")

        for name in {value, *text.split()}:
            descriptor = ctx.entity.fields.get(name)
            if descriptor is not None and not actor_is_role(ctx.actor, descriptor.role):
                raise Unauthorized("No privileges.")

        filter = self.builder.text_search_filter(ctx.entity, text, where, ctx.actor)
        return self.storage.fetch_options(ctx.entity, value, text.split(), filter, limit)

    async def stat(self, ctx: RequestContext) -> dict[str, Any]:
        """Grouped counts in a chart-ready shape."""
        self._guard(ctx, "stat")

        group = ctx.params.get("group") or ctx.entity.stat_field or self.settings.stat_field
        if not ctx.entity.has_column(group):
            raise BadRequest(f"Unknown field '{group}' on {ctx.entity.name}")

        filter = self.builder.build_filter(ctx.entity, {}, ctx.actor)
        groups = self.storage.grouped_count(ctx.entity, group, filter)

        return {
            "labels": [g["key"] for g in groups],
            "datasets": [
                {
                    "data": [g["count"] for g in groups],
                    "backgroundColor": [
                        STAT_PALETTE[i % len(STAT_PALETTE)] for i in range(len(groups))
                    ],
                }
            ],
        }
