"""FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resourceforge.api.endpoints import create_resource_router
from resourceforge.api.middleware import RequestLogMiddleware
from resourceforge.auth import AuthMiddleware, JWTService
from resourceforge.config import Settings, configure_logging, resolve_base_path
from resourceforge.errors import ResourceError
from resourceforge.metadata.loader import MetadataLoader
from resourceforge.metadata.registry import EntityRegistry
from resourceforge.metadata.validator import validate_metadata_dir
from resourceforge.persistence import DatabaseConfig, create_adapter
from resourceforge.resources.handlers import ResourceHandlers

logger = logging.getLogger(__name__)


def _load_registry(settings: Settings) -> EntityRegistry:
    """Validate and load YAML metadata into a fresh registry."""
    metadata_path = settings.metadata_path

    # Validate against JSON Schema (warn on errors, don't block startup)
    schema_issues = validate_metadata_dir(metadata_path)
    if schema_issues:
        error_count = sum(1 for i in schema_issues if i.severity == "error")
        warn_count = sum(1 for i in schema_issues if i.severity == "warning")
        for issue in schema_issues:
            if issue.severity == "error":
                logger.error("Metadata schema error: %s", issue)
            else:
                logger.warning("Metadata schema warning: %s", issue)
        logger.warning(
            "Metadata validation: %d error(s), %d warning(s). "
            "Run 'resourceforge metadata validate' for details.",
            error_count,
            warn_count,
        )

    loader = MetadataLoader(metadata_path)
    loader.load_all()

    registry = EntityRegistry()
    registry.register_loader(loader)
    return registry


def create_app(
    settings: Settings | None = None,
    db_config: DatabaseConfig | None = None,
    registry: EntityRegistry | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Runtime settings (default: from environment)
        db_config: Database configuration (default: from environment)
        registry: Pre-built entity registry; when omitted, entities are
            loaded from ``settings.metadata_path`` at startup

    Returns:
        Configured FastAPI app; storage is connected in its lifespan
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        configure_logging(settings.log_level)

        entity_registry = registry or _load_registry(settings)

        config = db_config or DatabaseConfig.from_env(resolve_base_path())
        storage = create_adapter(config)
        storage.connect()

        # Create tables for all entities
        for entity in entity_registry.list_entities():
            storage.initialize_entity(entity)

        app.state.registry = entity_registry
        app.state.storage = storage
        app.state.handlers = ResourceHandlers(storage, entity_registry, settings)
        logger.info("Serving %d resources", len(entity_registry.list_entities()))

        yield

        # Cleanup
        storage.close()

    app = FastAPI(title="ResourceForge API", lifespan=lifespan)
    app.state.registry = None
    app.state.handlers = None
    app.state.settings = settings

    # CORS for frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(AuthMiddleware, jwt_service=JWTService(settings.secret_key))

    @app.exception_handler(ResourceError)
    async def resource_error_handler(request: Request, exc: ResourceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(
        create_resource_router(
            get_handlers=lambda: app.state.handlers,
            get_registry=lambda: app.state.registry,
        )
    )

    return app
