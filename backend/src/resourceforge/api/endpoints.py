"""Resource API endpoints.

Every registered entity type is served under ``/api/{resource}`` by the
same generic handlers. Fixed sub-paths (``export``, ``grid``, ...) are
registered before ``/{id}`` so they never resolve as record ids.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from resourceforge.auth.middleware import get_actor
from resourceforge.errors import NotFound, Unauthorized
from resourceforge.metadata.loader import EntityType
from resourceforge.query.types import QuerySpec
from resourceforge.resources.context import RequestContext


class ResourcePayload(BaseModel):
    """Request body for create and update."""

    data: dict[str, Any] = {}


def create_resource_router(
    get_handlers,  # Callable that returns the ResourceHandlers
    get_registry,  # Callable that returns the EntityRegistry
) -> APIRouter:
    """Create the resource router with injected dependencies.

    Args:
        get_handlers: Function returning the ResourceHandlers
        get_registry: Function returning the EntityRegistry

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/api", tags=["resources"])

    def _entity(resource: str) -> EntityType:
        registry = get_registry()
        if registry is None:
            raise HTTPException(500, "Not initialized")
        entity = registry.resolve(resource)
        if entity is None:
            raise NotFound(f"Resource '{resource}' not found")
        return entity

    def _handlers():
        handlers = get_handlers()
        if handlers is None:
            raise HTTPException(500, "Not initialized")
        return handlers

    def _context(
        request: Request,
        resource: str,
        params: dict[str, Any] | None = None,
    ) -> RequestContext:
        entity = _entity(resource)
        query_params = dict(request.query_params)
        return RequestContext(
            actor=get_actor(request),
            entity=entity,
            resource=entity.resource,
            query=QuerySpec.from_params(query_params),
            params=query_params if params is None else params,
        )

    def _resolve_record(ctx: RequestContext, id: str) -> RequestContext:
        """Load the record named in the URL.

        Requires an actor unless anonymous access is allowed; 404 if the
        record is missing or not owned by a scoped actor.
        """
        handlers = _handlers()
        if ctx.actor is None and not handlers.settings.allow_anonymous:
            raise Unauthorized("Authentication required")

        record = handlers.storage.get(ctx.entity, id, with_trash=ctx.query.with_trash)
        if record is None:
            raise NotFound("Record not found")

        if handlers.builder.is_scoped(ctx.actor):
            owner_field = handlers.settings.restrict_field
            if str(record.get(owner_field)) != str(ctx.actor.user_id):
                raise NotFound("Record not found")

        ctx.record = record
        return ctx

    # --- Metadata ---

    @router.get("/metadata")
    async def list_entities() -> dict[str, Any]:
        """List all registered entity types."""
        registry = get_registry()
        if registry is None:
            raise HTTPException(500, "Not initialized")

        return {
            "entities": [
                {
                    "name": entity.name,
                    "resource": entity.resource,
                    "label": entity.label,
                    "pluralLabel": entity.plural_label,
                }
                for entity in registry.list_entities()
            ]
        }

    # --- Collection routes ---

    @router.get("/{resource}")
    async def index(resource: str, request: Request) -> dict[str, Any]:
        page = await _handlers().index(_context(request, resource))
        return page.to_dict()

    @router.post("/{resource}/import")
    async def import_(resource: str, request: Request):
        await _handlers().import_(_context(request, resource))

    @router.get("/{resource}/export")
    async def export(resource: str, request: Request) -> FileResponse:
        exported = await _handlers().export(_context(request, resource))
        return FileResponse(
            exported.path,
            filename=exported.filename,
            media_type=exported.media_type,
            background=BackgroundTask(exported.path.unlink, missing_ok=True),
        )

    @router.get("/{resource}/grid")
    async def grid(resource: str, request: Request) -> dict[str, Any]:
        return await _handlers().grid(_context(request, resource))

    @router.get("/{resource}/form")
    async def new_form(resource: str, request: Request) -> dict[str, Any]:
        return await _handlers().form(_context(request, resource))

    @router.get("/{resource}/options")
    async def options(resource: str, request: Request) -> list[dict[str, Any]]:
        return await _handlers().options(_context(request, resource))

    @router.get("/{resource}/stat")
    async def stat(resource: str, request: Request) -> dict[str, Any]:
        return await _handlers().stat(_context(request, resource))

    @router.post("/{resource}")
    async def store(resource: str, body: ResourcePayload, request: Request) -> dict[str, Any]:
        return await _handlers().store(_context(request, resource, params=body.data))

    @router.delete("/{resource}")
    async def destroy_all(resource: str, request: Request) -> dict[str, Any]:
        return await _handlers().destroy_all(_context(request, resource))

    # --- Record routes ---

    @router.get("/{resource}/{id}")
    async def show(resource: str, id: str, request: Request) -> dict[str, Any]:
        ctx = _resolve_record(_context(request, resource), id)
        return await _handlers().show(ctx)

    @router.get("/{resource}/{id}/form")
    async def edit_form(resource: str, id: str, request: Request) -> dict[str, Any]:
        ctx = _resolve_record(_context(request, resource), id)
        return await _handlers().form(ctx)

    @router.get("/{resource}/{id}/view")
    async def view(resource: str, id: str, request: Request) -> dict[str, Any]:
        ctx = _resolve_record(_context(request, resource), id)
        return await _handlers().view(ctx)

    @router.api_route("/{resource}/{id}", methods=["PUT", "PATCH"])
    async def update(
        resource: str, id: str, body: ResourcePayload, request: Request
    ) -> dict[str, Any]:
        ctx = _resolve_record(_context(request, resource, params=body.data), id)
        return await _handlers().update(ctx)

    @router.delete("/{resource}/{id}")
    async def destroy(resource: str, id: str, request: Request) -> dict[str, Any]:
        ctx = _resolve_record(_context(request, resource), id)
        return await _handlers().destroy(ctx)

    return router
