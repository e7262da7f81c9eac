"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def resolve_base_path() -> Path:
    """Project root: the parent of ``backend/`` when run from there, else cwd."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        return cwd.parent
    return cwd


@dataclass
class Settings:
    """Process-wide configuration, loaded once at startup.

    Attributes:
        metadata_path: Directory containing ``entities/*.yaml``
        restrict_field: Ownership field used to scope queries for scoped actors
        scope_permission: Permission that marks an actor as "own records only"
        allow_anonymous: Let requests without an actor through the guard
        secret_key: HS256 key for bearer tokens
        export_dir: Directory for temporary spreadsheet exports
        stat_field: Group field for stat when neither request nor entity names one
        max_per_page: Upper bound for the page size of list queries
        option_limit: Number of options loaded for ref fields by build_options
        log_level: Root log level name
    """

    metadata_path: Path = field(default_factory=lambda: resolve_base_path() / "metadata")
    restrict_field: str = "user_ids"
    scope_permission: str = "groups.@"
    allow_anonymous: bool = False
    secret_key: str = "dev-secret-key-change-in-production"
    export_dir: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "resourceforge-exports"
    )
    stat_field: str = "os"
    max_per_page: int = 500
    option_limit: int = 100
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> Settings:
        """Create settings from ``RESOURCEFORGE_*`` environment variables."""
        base_path = base_path or resolve_base_path()
        defaults = cls()

        export_dir = os.environ.get("RESOURCEFORGE_EXPORT_DIR")
        return cls(
            metadata_path=Path(
                os.environ.get("RESOURCEFORGE_METADATA_PATH", str(base_path / "metadata"))
            ),
            restrict_field=os.environ.get("RESOURCEFORGE_RESTRICT_FIELD", defaults.restrict_field),
            scope_permission=os.environ.get(
                "RESOURCEFORGE_SCOPE_PERMISSION", defaults.scope_permission
            ),
            allow_anonymous=_env_flag("RESOURCEFORGE_ALLOW_ANONYMOUS"),
            secret_key=os.environ.get("RESOURCEFORGE_SECRET_KEY", defaults.secret_key),
            export_dir=Path(export_dir) if export_dir else defaults.export_dir,
            stat_field=os.environ.get("RESOURCEFORGE_STAT_FIELD", defaults.stat_field),
            max_per_page=int(os.environ.get("RESOURCEFORGE_MAX_PER_PAGE", defaults.max_per_page)),
            option_limit=int(os.environ.get("RESOURCEFORGE_OPTION_LIMIT", defaults.option_limit)),
            log_level=os.environ.get("RESOURCEFORGE_LOG_LEVEL", defaults.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler. Safe to call more than once."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
