"""Conversion of loosely typed CTI entity records into typed entities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .annotations import (
    AnnotationType,
    Annotations,
    GJsonPath,
    InstanceSourceMap,
    TypeSourceMap,
)
from .entity import Entity, new_entity_instance, new_entity_type

RawJSON = Union[str, bytes, bytearray]


@dataclass
class UntypedSourceMap:
    """Source information as it comes with an untyped entity."""

    name: str = ""
    annotation_type: AnnotationType = field(default_factory=AnnotationType)
    source_path: str = ""
    original_path: str = ""


@dataclass
class UntypedEntity:
    """A CTI entity whose kind (type or instance) is not decided yet.

    JSON-valued fields hold raw JSON text; ``None`` means the field is absent.
    """

    cti: str = ""
    final: bool = False
    resilient: bool = False
    access: str = ""
    display_name: str = ""
    description: str = ""
    dictionaries: dict[str, Any] | None = None
    values: RawJSON | None = None
    schema: RawJSON | None = None
    traits_schema: RawJSON | None = None
    traits_annotations: RawJSON | None = None
    traits_source_map: UntypedSourceMap = field(default_factory=UntypedSourceMap)
    traits: RawJSON | None = None
    annotations: RawJSON | None = None
    source_map: UntypedSourceMap = field(default_factory=UntypedSourceMap)


def _decode_object(raw: RawJSON, what: str) -> dict[str, Any] | None:
    decoded = json.loads(raw)
    if decoded is None:
        return None
    if not isinstance(decoded, dict):
        raise ValueError(f"{what}: expected a JSON object, got {type(decoded).__name__}")
    return decoded


def get_source_annotations(raw_annotations: RawJSON | None) -> tuple[dict[str, Annotations], bool]:
    """Parse raw annotations JSON.

    Returns the annotations keyed by path and whether legacy ``$``-prefixed
    source-map keys were present among them.
    """
    if raw_annotations is None:
        return {}, False
    try:
        decoded = _decode_object(raw_annotations, "annotations") or {}
    except ValueError as exc:
        raise ValueError(f"unmarshal annotations: {exc}") from exc

    result: dict[str, Annotations] = {}
    has_legacy = False
    for key, value in decoded.items():
        if key.startswith("$"):
            has_legacy = True
            continue
        try:
            result[GJsonPath(key)] = Annotations() if value is None else Annotations.from_dict(value)
        except ValueError as exc:
            raise ValueError(f"unmarshal annotation {key}: {exc}") from exc
    return result, has_legacy


def _type_source_map(untyped_map: UntypedSourceMap) -> TypeSourceMap:
    return TypeSourceMap(
        name=untyped_map.name,
        source_path=untyped_map.source_path,
        original_path=untyped_map.original_path,
    )


def _legacy_type_source_map(raw: RawJSON, cti: str) -> TypeSourceMap:
    try:
        return TypeSourceMap.from_dict(json.loads(raw))
    except ValueError as exc:
        raise ValueError(f"unmarshal source map for {cti}: {exc}") from exc


def _convert_instance(untyped: UntypedEntity, annotations: dict[str, Annotations], has_legacy: bool) -> Entity:
    cti = untyped.cti
    if not untyped.final:
        raise ValueError(f"untyped entity {cti} is not final, cannot convert to typed entity instance")
    if untyped.traits_schema is not None:
        raise ValueError(f"untyped entity {cti} has traits schema, but it is not allowed for entity instances")
    if untyped.traits is not None:
        raise ValueError(f"untyped entity {cti} has traits, but it is not allowed for entity instances")
    if untyped.traits_annotations is not None:
        raise ValueError(
            f"untyped entity {cti} has traits annotations, but it is not allowed for entity instances"
        )
    if annotations:
        raise ValueError(f"untyped entity {cti} has annotations, but it is not allowed for entity instances")

    if has_legacy:
        try:
            source_map = InstanceSourceMap.from_dict(json.loads(untyped.annotations))
        except ValueError as exc:
            raise ValueError(f"unmarshal source map for {cti}: {exc}") from exc
    else:
        untyped_map = untyped.source_map
        source_map = InstanceSourceMap(
            annotation_type=untyped_map.annotation_type,
            source_path=untyped_map.source_path,
            original_path=untyped_map.original_path,
        )

    try:
        values = json.loads(untyped.values)
    except ValueError as exc:
        raise ValueError(f"unmarshal values for {cti}: {exc}") from exc
    try:
        instance = new_entity_instance(cti, values)
    except ValueError as exc:
        raise ValueError(f"make entity instance: {exc}") from exc
    instance.final = True
    instance.resilient = untyped.resilient
    instance.access = untyped.access
    instance.display_name = untyped.display_name
    instance.description = untyped.description
    instance.source_map = source_map
    return instance


def _convert_type(untyped: UntypedEntity, annotations: dict[str, Annotations], has_legacy: bool) -> Entity:
    cti = untyped.cti
    try:
        schema = _decode_object(untyped.schema, "schema")
    except ValueError as exc:
        raise ValueError(f"unmarshal schema for {cti}: {exc}") from exc
    try:
        entity_type = new_entity_type(cti, schema, annotations)
    except ValueError as exc:
        raise ValueError(f"make entity type: {exc}") from exc
    entity_type.final = untyped.final
    entity_type.resilient = untyped.resilient
    entity_type.access = untyped.access
    entity_type.display_name = untyped.display_name
    entity_type.description = untyped.description

    if untyped.traits_schema is not None:
        try:
            traits_schema = _decode_object(untyped.traits_schema, "traits schema")
        except ValueError as exc:
            raise ValueError(f"unmarshal traits schema for {cti}: {exc}") from exc
        try:
            traits_annotations, traits_legacy = get_source_annotations(untyped.traits_annotations)
        except ValueError as exc:
            raise ValueError(f"get traits annotations for {cti}: {exc}") from exc
        entity_type.set_traits_schema(traits_schema, traits_annotations)
        if traits_legacy:
            entity_type.traits_source_map = _legacy_type_source_map(untyped.traits_annotations, cti)
        else:
            entity_type.traits_source_map = _type_source_map(untyped.traits_source_map)

    if untyped.traits is not None:
        try:
            entity_type.traits = _decode_object(untyped.traits, "traits")
        except ValueError as exc:
            raise ValueError(f"unmarshal traits for {cti}: {exc}") from exc

    if has_legacy:
        entity_type.source_map = _legacy_type_source_map(untyped.annotations, cti)
    else:
        entity_type.source_map = _type_source_map(untyped.source_map)
    return entity_type


def convert_untyped_entity(untyped: UntypedEntity) -> Entity:
    """Turn an untyped entity into an ``EntityType`` (has a schema) or an ``EntityInstance`` (has values)."""
    cti = untyped.cti
    if untyped.schema is None and untyped.values is None:
        raise ValueError(f"untyped entity {cti} has neither schema nor values")
    if untyped.schema is not None and untyped.values is not None:
        raise ValueError(f"untyped entity {cti} has both schema and values, only one is allowed")

    try:
        annotations, has_legacy = get_source_annotations(untyped.annotations)
    except ValueError as exc:
        raise ValueError(f"get annotations for {cti}: {exc}") from exc

    if untyped.values is not None:
        return _convert_instance(untyped, annotations, has_legacy)
    return _convert_type(untyped, annotations, has_legacy)