"""StorageEngine Protocol: the interface the resource handlers persist through."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from resourceforge.metadata.loader import EntityType

# Looks up a related entity type by name (used for eager-loading)
EntityResolver = Callable[[str], EntityType | None]


@runtime_checkable
class StorageEngine(Protocol):
    """Interface all storage engines must implement.

    Filters use the condition-group format of ``resourceforge.query.types``.
    Unless ``with_trash`` is set, rows soft-deleted on entities with
    ``soft_deletes`` are invisible to every read.
    """

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def initialize_entity(self, entity: EntityType) -> None: ...

    def create(self, entity: EntityType, data: dict[str, Any]) -> dict[str, Any]: ...

    def get(
        self, entity: EntityType, id: str, with_trash: bool = False
    ) -> dict[str, Any] | None: ...

    def update(
        self, entity: EntityType, id: str, data: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    def delete(self, entity: EntityType, id: str) -> bool: ...

    def delete_where(self, entity: EntityType, filter: dict | None = None) -> int: ...

    def query(
        self,
        entity: EntityType,
        fields: list[str] | None = None,
        filter: dict | None = None,
        sort: list[dict] | None = None,
        limit: int | None = None,
        offset: int = 0,
        with_trash: bool = False,
    ) -> list[dict[str, Any]]: ...

    def count(
        self, entity: EntityType, filter: dict | None = None, with_trash: bool = False
    ) -> int: ...

    def grouped_count(
        self, entity: EntityType, field: str, filter: dict | None = None
    ) -> list[dict[str, Any]]: ...

    def fetch_options(
        self,
        entity: EntityType,
        value_field: str,
        text_fields: list[str],
        filter: dict | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def hydrate_relations(
        self,
        records: list[dict[str, Any]],
        entity: EntityType,
        relations: list[str],
        resolve: EntityResolver,
    ) -> list[dict[str, Any]]: ...
