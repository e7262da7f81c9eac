"""Shared fixtures: entity types, an in-memory storage engine and actors."""

from pathlib import Path

import pytest

from resourceforge.appends import AppendRegistry
from resourceforge.auth import ActorContext
from resourceforge.config import Settings
from resourceforge.metadata.loader import MetadataLoader
from resourceforge.metadata.registry import EntityRegistry
from resourceforge.persistence.sql import SQLAdapter
from resourceforge.resources import RequestContext, ResourceHandlers
from resourceforge.validation import ValidatorRegistry

REPO_METADATA = Path(__file__).resolve().parents[2] / "metadata"


COMPANY = {
    "entity": "Company",
    "pluralLabel": "Companies",
    "fields": [
        {"name": "id", "type": "id", "editable": False},
        {"name": "name", "type": "string", "searchable": True},
        {"name": "created_at", "type": "datetime", "editable": False},
        {"name": "updated_at", "type": "datetime", "editable": False},
    ],
}

CONTACT = {
    "entity": "Contact",
    "softDeletes": True,
    "fields": [
        {"name": "id", "type": "id", "editable": False},
        {
            "name": "name",
            "type": "string",
            "searchable": True,
            "selectSize": 10,
            "validation": {"required": True},
        },
        {"name": "title", "type": "string", "searchable": True, "selectSize": 3},
        {"name": "email", "type": "email"},
        {
            "name": "status",
            "type": "select",
            "options": [
                {"value": "lead", "label": "Lead"},
                {"value": "active", "label": "Active"},
                {"value": "churned", "label": "Churned"},
            ],
        },
        {"name": "os", "type": "string"},
        {"name": "company_id", "type": "relation", "ref": "Company.name"},
        {"name": "salary", "type": "number", "role": "manager"},
        {"name": "notes", "type": "text", "listable": False},
        {"name": "user_ids", "type": "string", "editable": False, "auto": "actor.id"},
        {"name": "created_at", "type": "datetime", "editable": False},
        {"name": "updated_at", "type": "datetime", "editable": False},
        {"name": "_actions", "label": "Actions"},
    ],
}

NOTE = {
    "entity": "Note",
    "fields": [
        {"name": "id", "type": "id", "editable": False},
        {"name": "body", "type": "text"},
    ],
}


@pytest.fixture(autouse=True)
def clear_registries():
    """Clear code registries before and after each test."""
    AppendRegistry.clear()
    ValidatorRegistry.clear()
    yield
    AppendRegistry.clear()
    ValidatorRegistry.clear()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        metadata_path=REPO_METADATA,
        export_dir=tmp_path / "exports",
        secret_key="test-secret-key-with-enough-length-123",
    )


@pytest.fixture
def registry():
    loader = MetadataLoader(Path("unused"))
    registry = EntityRegistry()
    for data in (COMPANY, CONTACT, NOTE):
        registry.register(loader.resolve_entity(data))
    return registry


@pytest.fixture
def company(registry):
    return registry.get("Company")


@pytest.fixture
def contact(registry):
    return registry.get("Contact")


@pytest.fixture
def note(registry):
    return registry.get("Note")


@pytest.fixture
def storage(registry):
    adapter = SQLAdapter("sqlite:///:memory:")
    adapter.connect()
    for entity in registry.list_entities():
        adapter.initialize_entity(entity)
    yield adapter
    adapter.close()


@pytest.fixture
def handlers(storage, registry, settings):
    return ResourceHandlers(storage, registry, settings)


@pytest.fixture
def admin():
    return ActorContext(user_id="admin-1", roles=["admin"], permissions={"*"})


@pytest.fixture
def member():
    """Ordinary user with every contact permission."""
    return ActorContext(user_id="user-1", roles=["user"], permissions={"contact.*", "note.*"})


@pytest.fixture
def scoped():
    """User restricted to records it owns."""
    return ActorContext(
        user_id="user-2",
        roles=["user"],
        permissions={"contact.*", "note.*", "groups.@"},
    )


@pytest.fixture
def nobody():
    return ActorContext(user_id="user-3", roles=["readonly"], permissions=set())


@pytest.fixture
def make_ctx():
    """Build a RequestContext: make_ctx(actor, entity, query=..., params=..., record=...)."""

    def _make(actor, entity, **kwargs):
        return RequestContext(actor=actor, entity=entity, **kwargs)

    return _make
