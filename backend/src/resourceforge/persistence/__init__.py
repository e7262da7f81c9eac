"""Persistence layer - storage engine protocol and SQL implementation."""

from resourceforge.persistence.adapter import StorageEngine
from resourceforge.persistence.config import DatabaseConfig, create_adapter

__all__ = ["StorageEngine", "DatabaseConfig", "create_adapter"]
