"""Process-wide registry of entity types.

Every entity type is registered explicitly at startup, either from YAML
metadata (``register_loader``) or programmatically. Lookups go through the
entity name or its URL resource slug; the registry is read-only once the
application is serving requests.
"""

from resourceforge.metadata.loader import EntityType, MetadataLoader


class EntityRegistry:
    """Maps entity names and resource slugs to EntityType tables."""

    def __init__(self) -> None:
        self._by_name: dict[str, EntityType] = {}
        self._by_resource: dict[str, EntityType] = {}

    def register(self, entity: EntityType) -> None:
        """Register an entity type.

        Raises:
            ValueError: If the name or resource slug is already taken
        """
        if entity.name in self._by_name:
            raise ValueError(f"Entity '{entity.name}' is already registered")
        if entity.resource in self._by_resource:
            raise ValueError(f"Resource '{entity.resource}' is already registered")
        self._by_name[entity.name] = entity
        self._by_resource[entity.resource] = entity

    def register_loader(self, loader: MetadataLoader) -> None:
        """Register every entity a MetadataLoader has loaded."""
        for name in loader.list_entities():
            entity = loader.get_entity(name)
            if entity:
                self.register(entity)

    def get(self, name: str) -> EntityType | None:
        """Get an entity type by name."""
        return self._by_name.get(name)

    def resolve(self, resource: str) -> EntityType | None:
        """Resolve a URL resource slug (falling back to the entity name)."""
        return self._by_resource.get(resource) or self._by_name.get(resource)

    def list_entities(self) -> list[EntityType]:
        return list(self._by_name.values())

    def __contains__(self, name: str) -> bool:
        return name in self._by_name
