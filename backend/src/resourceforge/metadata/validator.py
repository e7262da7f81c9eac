"""
metadata/validator.py - JSON Schema validation for entity YAML files.

Usage:
    from resourceforge.metadata.validator import validate_metadata_dir

    issues = validate_metadata_dir(Path("metadata"))
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"

ENTITY_SCHEMA = "entity.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for a metadata YAML file."""

    file: Path
    message: str
    path: str = ""          # Location within the document, e.g. "fields[0]/type"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


def _load_schema(name: str) -> dict[str, Any]:
    schema_path = _SCHEMAS_DIR / name
    with schema_path.open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _semantic_issues(yaml_path: Path, doc: dict[str, Any]) -> list[ValidationIssue]:
    """Checks JSON Schema cannot express: duplicate field names, primary key."""
    issues: list[ValidationIssue] = []
    names = [f.get("name") for f in doc.get("fields", []) if isinstance(f, dict)]

    seen: set[str] = set()
    for name in names:
        if name in seen:
            issues.append(ValidationIssue(file=yaml_path, message=f"Duplicate field '{name}'"))
        seen.add(name)

    primary_key = doc.get("primaryKey", "id")
    if primary_key not in seen:
        issues.append(
            ValidationIssue(
                file=yaml_path,
                message=f"Primary key '{primary_key}' is not declared as a field",
            )
        )

    if doc.get("softDeletes") and "deleted_at" in seen:
        issues.append(
            ValidationIssue(
                file=yaml_path,
                message="'deleted_at' is managed by softDeletes and should not be declared",
                severity="warning",
            )
        )
    return issues


def validate_yaml_file(yaml_path: Path, schema_name: str = ENTITY_SCHEMA) -> list[ValidationIssue]:
    """
    Validate a single YAML file against the named schema.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    try:
        with yaml_path.open() as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if doc is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    validator = Draft202012Validator(_load_schema(schema_name))
    issues = [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=lambda e: list(e.path))
    ]
    if issues or not isinstance(doc, dict):
        return issues

    return _semantic_issues(yaml_path, doc)


def validate_metadata_dir(metadata_dir: Path, *, strict: bool = False) -> list[ValidationIssue]:
    """
    Validate all entity YAML files under ``metadata_dir/entities``.

    Args:
        metadata_dir: Root metadata directory (contains ``entities/``).
        strict:       If ``True``, warnings are escalated to errors.

    Returns:
        A flat list of :class:`ValidationIssue` objects across all files.
    """
    if not metadata_dir.is_dir():
        return [
            ValidationIssue(
                file=metadata_dir,
                message=f"Metadata directory does not exist: {metadata_dir}",
            )
        ]

    all_issues: list[ValidationIssue] = []
    target = metadata_dir / "entities"
    if not target.is_dir():
        logger.warning("No entities directory under %s", metadata_dir)
        return all_issues

    for yaml_file in sorted(target.glob("*.yaml")):
        file_issues = validate_yaml_file(yaml_file)
        if strict:
            for issue in file_issues:
                if issue.severity == "warning":
                    issue.severity = "error"
        all_issues.extend(file_issues)

    return all_issues
