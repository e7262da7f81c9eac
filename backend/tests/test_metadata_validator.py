"""
Tests for resourceforge.metadata (loader, registry, schema validator)

Covers:
  - MetadataLoader.resolve_entity() - defaults, options, virtual actions field
  - MetadataLoader.load_all()       - repo metadata, reference checks
  - EntityRegistry                  - name / resource lookups, duplicates
  - build_options()                 - per-request copies of ref descriptors
  - validate_yaml_file()            - single-file validation (valid + invalid)
  - validate_metadata_dir()         - directory walk, strict mode
"""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from resourceforge.metadata.loader import MetadataLoader, to_display_name, to_snake_case
from resourceforge.metadata.registry import EntityRegistry
from resourceforge.metadata.validator import validate_metadata_dir, validate_yaml_file

REPO_METADATA = Path(__file__).resolve().parents[2] / "metadata"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write_yaml(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data))
    return path


def _minimal_entity(**overrides) -> dict:
    doc = {
        "entity": "Widget",
        "fields": [
            {"name": "id", "type": "id"},
            {"name": "name", "type": "string"},
        ],
    }
    doc.update(overrides)
    return doc


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("name,expected", [
    ("company_id", "Company Id"),
    ("createdAt", "Created At"),
    ("_actions", "Actions"),
])
def test_to_display_name(name, expected):
    assert to_display_name(name) == expected


def test_to_snake_case():
    assert to_snake_case("SalesOrder") == "sales_order"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class TestResolveEntity:
    def test_defaults(self):
        entity = MetadataLoader(Path("unused")).resolve_entity(_minimal_entity())
        assert entity.resource == "widget"
        assert entity.label == "Widget"
        assert entity.plural_label == "Widgets"
        assert entity.primary_key == "id"
        assert entity.soft_deletes is False

        name = entity.fields["name"]
        assert name.listable and name.editable and name.viewable
        assert not name.searchable

    def test_actions_field_is_virtual(self):
        doc = _minimal_entity()
        doc["fields"].append({"name": "_actions"})
        entity = MetadataLoader(Path("unused")).resolve_entity(doc)
        assert entity.fields["_actions"].virtual
        assert not entity.has_column("_actions")
        assert "_actions" not in entity.stored_fields()

    def test_bare_options_normalized(self):
        doc = _minimal_entity()
        doc["fields"].append({"name": "os", "type": "select", "options": ["ios", 2]})
        entity = MetadataLoader(Path("unused")).resolve_entity(doc)
        assert entity.fields["os"].options == [
            {"value": "ios", "label": "ios"},
            {"value": 2, "label": "2"},
        ]

    def test_ref_parts(self, contact):
        descriptor = contact.fields["company_id"]
        assert descriptor.ref_entity == "Company"
        assert descriptor.ref_label_field == "name"


class TestLoadAll:
    def test_repo_metadata_loads(self):
        loader = MetadataLoader(REPO_METADATA)
        loader.load_all()
        assert {"Company", "Contact", "Device"} <= set(loader.list_entities())
        assert loader.get_entity("Contact").soft_deletes

    def test_unknown_ref_rejected(self, tmp_path):
        doc = _minimal_entity()
        doc["fields"].append({"name": "owner_id", "ref": "Ghost.name"})
        _write_yaml(tmp_path / "entities" / "widget.yaml", doc)

        with pytest.raises(ValueError, match="unknown entity 'Ghost'"):
            MetadataLoader(tmp_path).load_all()

    def test_duplicate_resource_rejected(self, tmp_path):
        _write_yaml(tmp_path / "entities" / "a.yaml", _minimal_entity(resource="things"))
        _write_yaml(
            tmp_path / "entities" / "b.yaml", _minimal_entity(entity="Gadget", resource="things")
        )
        with pytest.raises(ValueError, match="Duplicate resource"):
            MetadataLoader(tmp_path).load_all()

    def test_missing_directory_loads_nothing(self, tmp_path):
        loader = MetadataLoader(tmp_path)
        loader.load_all()
        assert loader.list_entities() == []


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestEntityRegistry:
    def test_lookup_by_name_and_resource(self, registry, contact):
        assert registry.get("Contact") is contact
        assert registry.resolve("contact") is contact
        assert registry.resolve("Contact") is contact
        assert registry.resolve("nope") is None
        assert "Contact" in registry

    def test_duplicate_registration(self, registry, contact):
        with pytest.raises(ValueError, match="already registered"):
            registry.register(contact)

    def test_register_loader(self):
        loader = MetadataLoader(REPO_METADATA)
        loader.load_all()
        registry = EntityRegistry()
        registry.register_loader(loader)
        assert registry.resolve("device").name == "Device"


class TestBuildOptions:
    @pytest.mark.asyncio
    async def test_ref_options_loaded_on_a_copy(self, contact):
        async def load(descriptor):
            return [{"value": "c1", "label": "Acme"}]

        fields = await contact.build_options(load)

        assert fields["company_id"].options == [{"value": "c1", "label": "Acme"}]
        assert contact.fields["company_id"].options is None
        assert fields["status"] is contact.fields["status"]


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------

class TestValidateYamlFile:
    def test_valid_file(self, tmp_path):
        path = _write_yaml(tmp_path / "widget.yaml", _minimal_entity())
        assert validate_yaml_file(path) == []

    def test_unknown_field_type(self, tmp_path):
        doc = _minimal_entity()
        doc["fields"][1]["type"] = "blob"
        issues = validate_yaml_file(_write_yaml(tmp_path / "widget.yaml", doc))
        assert len(issues) == 1
        assert issues[0].path == "fields[1]/type"

    def test_unknown_property(self, tmp_path):
        issues = validate_yaml_file(
            _write_yaml(tmp_path / "widget.yaml", _minimal_entity(colour="red"))
        )
        assert issues and "colour" in issues[0].message

    def test_duplicate_field(self, tmp_path):
        doc = _minimal_entity()
        doc["fields"].append({"name": "name"})
        issues = validate_yaml_file(_write_yaml(tmp_path / "widget.yaml", doc))
        assert [i.message for i in issues] == ["Duplicate field 'name'"]

    def test_missing_primary_key(self, tmp_path):
        doc = _minimal_entity(primaryKey="uuid")
        issues = validate_yaml_file(_write_yaml(tmp_path / "widget.yaml", doc))
        assert "Primary key 'uuid'" in issues[0].message

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert "empty" in validate_yaml_file(path)[0].message

    def test_parse_error(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("entity: [unclosed")
        assert "YAML parse error" in validate_yaml_file(path)[0].message


class TestValidateMetadataDir:
    def test_repo_metadata_is_valid(self):
        assert validate_metadata_dir(REPO_METADATA) == []

    def test_missing_directory(self, tmp_path):
        issues = validate_metadata_dir(tmp_path / "nope")
        assert "does not exist" in issues[0].message

    def test_strict_escalates_warnings(self, tmp_path):
        doc = _minimal_entity(softDeletes=True)
        doc["fields"].append({"name": "deleted_at", "type": "datetime"})
        _write_yaml(tmp_path / "entities" / "widget.yaml", doc)

        lenient = validate_metadata_dir(tmp_path)
        assert [i.severity for i in lenient] == ["warning"]

        strict = validate_metadata_dir(tmp_path, strict=True)
        assert [i.severity for i in strict] == ["error"]
