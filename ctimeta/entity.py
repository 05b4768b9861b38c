"""CTI entities: entity types with schemas and traits, and entity instances."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from .annotations import Annotations, InstanceSourceMap, TypeSourceMap
from .utils import get_parent_cti


class AccessModifier(str, Enum):
    """Controls which other entities may reference an entity."""

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


class MContext:
    """Context shared by entities; reserved for future use."""


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def _marshal(value: Any) -> bytes:
    try:
        text = json.dumps(value, separators=(",", ":"), default=_json_default)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"marshal values: {exc}") from exc
    return text.encode()


@dataclass(eq=False)
class Entity:
    """Properties and behaviour shared by every CTI entity."""

    cti: str = ""
    final: bool = False
    access: str = ""
    resilient: bool = False
    display_name: str = ""
    description: str = ""
    dictionaries: dict[str, Any] | None = None
    annotations: dict[str, Annotations] = field(default_factory=dict)
    parent: EntityType | None = None
    context: MContext | None = None

    def _chain(self) -> Iterable[Entity]:
        node: Entity | None = self
        while node is not None:
            yield node
            node = node.parent

    def find_annotations_by_predicate_in_chain(
        self, key: str, predicate: Callable[[Annotations], bool]
    ) -> Annotations | None:
        """Return the first annotations under ``key`` up the parent chain that satisfy ``predicate``."""
        for node in self._chain():
            found = (node.annotations or {}).get(key)
            if found is not None and predicate(found):
                return found
        return None

    def find_annotations_by_key_in_chain(self, key: str) -> Annotations | None:
        """Return the first annotations under ``key`` in this entity or its ancestors."""
        for node in self._chain():
            annotations = node.annotations or {}
            if key in annotations:
                return annotations[key]
        return None

    def is_a(self, typ: EntityType | None) -> bool:
        """Tell whether this entity is ``typ`` or derives from it."""
        if typ is None:
            return False
        return self.cti.startswith(typ.cti)

    def is_child_of(self, parent: EntityType | None) -> bool:
        """Tell whether ``parent`` is the direct parent of this entity."""
        if parent is None:
            return False
        return get_parent_cti(self.cti) == parent.cti

    def set_parent(self, parent: EntityType | None) -> None:
        raise TypeError("entity does not implement SetParent")

    def replace_pointer(self, src: Entity) -> None:
        raise TypeError("entity does not implement ReplacePointer")


@dataclass(eq=False)
class EntityType(Entity):
    """A CTI type: a data schema with optional traits schema and traits."""

    schema: Any = None
    traits: dict[str, Any] | None = None
    traits_schema: Any = None
    traits_annotations: dict[str, Annotations] | None = None
    traits_source_map: TypeSourceMap | None = None
    source_map: TypeSourceMap | None = None
    _merged_traits: dict[str, Any] | None = field(default=None, init=False, repr=False)
    _raw_schema: bytes | None = field(default=None, init=False, repr=False)
    _raw_traits: bytes | None = field(default=None, init=False, repr=False)

    def set_parent(self, parent: EntityType | None) -> None:
        """Set or clear the parent type; a final type cannot be a parent."""
        if parent is None:
            self.parent = None
            return
        if parent.final:
            raise ValueError("cannot set parent to a final type")
        self.parent = parent

    def find_entity_type_by_predicate_in_chain(
        self, predicate: Callable[[EntityType], bool]
    ) -> EntityType | None:
        """Return the first type, starting with this one, that satisfies ``predicate``."""
        node: EntityType | None = self
        while node is not None:
            if predicate(node):
                return node
            node = node.parent
        return None

    def find_traits_schema_in_chain(self) -> Any:
        """Return the nearest traits schema in this type or its ancestors."""
        found = self.find_entity_type_by_predicate_in_chain(lambda t: t.traits_schema is not None)
        return None if found is None else found.traits_schema

    def get_merged_traits(self) -> dict[str, Any]:
        """Return traits of this type and its ancestors, nearest definition first; cached."""
        if self._merged_traits is not None:
            return self._merged_traits
        merged: dict[str, Any] = {}
        node: EntityType | None = self
        while node is not None:
            for key, value in (node.traits or {}).items():
                merged.setdefault(key, value)
            node = node.parent
        self._merged_traits = merged
        return merged

    def reset_merged_traits(self) -> None:
        """Drop the cached merged traits."""
        self._merged_traits = None

    def get_raw_schema(self) -> bytes:
        """Return the schema encoded as JSON; cached."""
        if self._raw_schema is None:
            self._raw_schema = _marshal(self.schema)
        return self._raw_schema

    def get_raw_traits(self) -> bytes:
        """Return the traits encoded as JSON; cached."""
        if self._raw_traits is None:
            self._raw_traits = _marshal(self.traits)
        return self._raw_traits

    def set_traits_schema(self, traits_schema: Any, traits_annotations: dict[str, Annotations] | None) -> None:
        self.traits_schema = traits_schema
        self.traits_annotations = traits_annotations

    def replace_pointer(self, src: Entity) -> None:
        """Take over every field of another entity type."""
        if not isinstance(src, EntityType):
            raise TypeError("invalid type for EntityType replacement")
        self.__dict__.update(src.__dict__)


@dataclass(eq=False)
class EntityInstance(Entity):
    """A CTI instance: values that conform to the schema of its parent type."""

    values: Any = None
    source_map: InstanceSourceMap | None = None
    _raw_values: bytes | None = field(default=None, init=False, repr=False)

    def set_parent(self, parent: EntityType | None) -> None:
        """Set or clear the parent type; instances may have a final parent."""
        self.parent = parent

    def find_entity_type_by_predicate_in_chain(
        self, predicate: Callable[[EntityType], bool]
    ) -> EntityType | None:
        """Return the first ancestor type that satisfies ``predicate``."""
        if self.parent is None:
            return None
        return self.parent.find_entity_type_by_predicate_in_chain(predicate)

    def get_raw_values(self) -> bytes:
        """Return the values encoded as JSON; cached."""
        if self._raw_values is None:
            self._raw_values = _marshal(self.values)
        return self._raw_values

    def replace_pointer(self, src: Entity) -> None:
        """Take over every field of another entity instance."""
        if not isinstance(src, EntityInstance):
            raise TypeError("invalid type for EntityInstance replacement")
        self.__dict__.update(src.__dict__)


def new_entity_type(
    cti: str, schema: Any, annotations: dict[str, Annotations] | None = None
) -> EntityType:
    """Create a final, public entity type."""
    if not cti:
        raise ValueError("identifier is empty")
    if schema is None:
        raise ValueError("schema is nil")
    return EntityType(
        cti=cti,
        final=True,
        access=AccessModifier.PUBLIC,
        annotations={} if annotations is None else annotations,
        schema=schema,
    )


def new_entity_instance(cti: str, values: Any) -> EntityInstance:
    """Create a final, public entity instance."""
    if not cti:
        raise ValueError("identifier is empty")
    if values is None:
        raise ValueError("values is nil")
    return EntityInstance(cti=cti, final=True, access=AccessModifier.PUBLIC, values=values)


def sort_entities(entities: Iterable[Entity]) -> list[Entity]:
    """Return the entities ordered by their CTI identifiers."""
    return sorted(entities, key=lambda entity: entity.cti)