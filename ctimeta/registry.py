"""An in-memory store of CTI entity types and instances."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from .entity import Entity, EntityInstance, EntityType


class DuplicateEntityError(ValueError):
    """Raised when an entity with the same CTI identifier is already stored."""


@dataclass
class MetadataRegistry:
    """Storage for CTI types and instances, indexed by identifier."""

    types: dict[str, EntityType] = field(default_factory=dict)
    instances: dict[str, EntityInstance] = field(default_factory=dict)
    index: dict[str, Entity] = field(default_factory=dict)

    def add(self, entity: Entity) -> None:
        """Store an entity type or instance."""
        cti = entity.cti
        if cti in self.index:
            raise DuplicateEntityError(f"duplicate cti entity {cti}")
        if isinstance(entity, EntityInstance):
            self.instances[cti] = entity
        elif isinstance(entity, EntityType):
            self.types[cti] = entity
        else:
            raise TypeError(f"invalid entity: {cti}")
        self.index[cti] = entity

    def copy_from(self, other: MetadataRegistry) -> None:
        """Add every type, then every instance, of another registry."""
        for cti, entity in ((e.cti, e) for e in other.types.values()):
            if cti in self.index:
                raise DuplicateEntityError(f"duplicate cti entity {cti}")
            self.types[cti] = entity
            self.index[cti] = entity
        for cti, entity in ((e.cti, e) for e in other.instances.values()):
            if cti in self.index:
                raise DuplicateEntityError(f"duplicate cti entity {cti}")
            self.instances[cti] = entity
            self.index[cti] = entity

    def clone(self) -> MetadataRegistry:
        """Return a shallow copy that shares the underlying maps."""
        return dataclasses.replace(self)