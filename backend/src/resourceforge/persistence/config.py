"""Where the storage engine connects, and the factory that builds it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from resourceforge.persistence.adapter import StorageEngine

DEFAULT_DB_NAME = "resourceforge.db"


@dataclass
class DatabaseConfig:
    """A database URL; ``sqlite:///`` files and ``postgresql://`` servers."""

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Pick the URL from the environment.

        ``DATABASE_URL`` wins. ``RESOURCEFORGE_DB_PATH`` names a SQLite file.
        Otherwise the file lives under ``<base_path>/data`` (or the working
        directory when no base path is given).
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_path = os.environ.get("RESOURCEFORGE_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}")

        if base_path is None:
            return cls(url=f"sqlite:///{DEFAULT_DB_NAME}")
        return cls(url=f"sqlite:///{base_path / 'data' / DEFAULT_DB_NAME}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith("postgresql")

    @property
    def sqlite_path(self) -> str | None:
        """Filesystem path of a file-backed SQLite database, else None."""
        if not self.is_sqlite:
            return None
        path = self.url.replace("sqlite:///", "", 1)
        if not path or path == ":memory:" or path == self.url:
            return None
        return path

    @property
    def sqlalchemy_url(self) -> str:
        # Plain postgresql:// would pick psycopg2; the postgres extra installs psycopg 3
        if self.url.startswith("postgresql://"):
            return "postgresql+psycopg://" + self.url[len("postgresql://"):]
        return self.url


def create_adapter(config: DatabaseConfig) -> StorageEngine:
    """Build an unconnected StorageEngine for ``config``.

    Raises:
        ValueError: If the URL scheme is neither SQLite nor PostgreSQL
    """
    if not (config.is_sqlite or config.is_postgresql):
        raise ValueError(f"Unsupported database URL scheme: {config.url}")

    from resourceforge.persistence.sql import SQLAdapter

    return SQLAdapter(config.sqlalchemy_url)
