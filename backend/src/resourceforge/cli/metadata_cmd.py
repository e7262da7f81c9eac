"""Metadata CLI commands - validate and list."""

from pathlib import Path

import click

from resourceforge.config import Settings, resolve_base_path
from resourceforge.metadata.loader import MetadataLoader
from resourceforge.metadata.validator import validate_metadata_dir, validate_yaml_file


def _metadata_path(override: Path | None) -> Path:
    """Metadata directory: --metadata, $RESOURCEFORGE_METADATA_PATH, or ./metadata."""
    if override is not None:
        return override
    return Settings.from_env(resolve_base_path()).metadata_path


metadata_option = click.option(
    "--metadata",
    "metadata_dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Metadata directory (default: ./metadata).",
)


@click.group()
def metadata():
    """Metadata commands."""
    pass


@metadata.command()
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Treat warnings as errors.",
)
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Validate a single YAML file instead of the whole metadata directory.",
)
@metadata_option
def validate(strict: bool, target_path: Path | None, metadata_dir: Path | None):
    """Validate entity YAML files against the JSON Schema."""
    metadata_path = _metadata_path(metadata_dir)

    # ── Schema (JSON Schema) validation ─────────────────────────────────────
    if target_path is not None:
        schema_issues = validate_yaml_file(target_path)
    else:
        if not metadata_path.exists():
            click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
            raise SystemExit(1)
        schema_issues = validate_metadata_dir(metadata_path, strict=strict)

    errors = [i for i in schema_issues if i.severity == "error"]
    warnings = [i for i in schema_issues if i.severity == "warning"]

    for issue in schema_issues:
        colour = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(str(issue), fg=colour))

    if errors:
        click.echo(
            click.style(
                f"\n{len(errors)} schema error(s) found"
                + (f", {len(warnings)} warning(s)" if warnings else ""),
                fg="red",
                bold=True,
            )
        )
        raise SystemExit(1)

    if warnings:
        click.echo(
            click.style(f"{len(warnings)} warning(s) found.", fg="yellow")
        )

    # ── Semantic (loader) validation ─────────────────────────────────────────
    # Only runs when validating the full directory (target_path is None)
    if target_path is None:
        try:
            loader = MetadataLoader(metadata_path)
            loader.load_all()
        except Exception as e:
            click.echo(click.style(f"\nSemantic validation failed: {e}", fg="red"), err=True)
            raise SystemExit(1)

        entities = loader.list_entities()
        click.echo(f"\nLoaded {len(entities)} entities:")
        for name in sorted(entities):
            entity = loader.get_entity(name)
            field_count = len(entity.fields) if entity else 0
            click.echo(f"  ✓ {name} ({field_count} fields, resource: {entity.resource})")

    click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))


@metadata.command("list")
@metadata_option
def list_cmd(metadata_dir: Path | None):
    """List entity types with their resource slugs and fields."""
    metadata_path = _metadata_path(metadata_dir)

    loader = MetadataLoader(metadata_path)
    try:
        loader.load_all()
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    names = loader.list_entities()
    if not names:
        click.echo(f"No entities found under {metadata_path}")
        return

    for name in sorted(names):
        entity = loader.get_entity(name)
        flags = " [soft deletes]" if entity.soft_deletes else ""
        click.echo(f"{entity.name} -> /api/{entity.resource}{flags}")
        for key, descriptor in entity.fields.items():
            extras = []
            if descriptor.ref:
                extras.append(f"ref {descriptor.ref}")
            if descriptor.role:
                extras.append(f"role {descriptor.role}")
            if descriptor.listable is False:
                extras.append("unlisted")
            if descriptor.editable is False:
                extras.append("read-only")
            suffix = f" ({', '.join(extras)})" if extras else ""
            click.echo(f"  {key}: {descriptor.type}{suffix}")
