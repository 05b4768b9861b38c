"""Annotations attached to CTI schemas, GJSON-style paths and source maps."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

_MISSING = object()

_BOOL_KEYS = {
    "id": "cti.id",
    "access_field": "cti.access_field",
    "display_name": "cti.display_name",
    "description": "cti.description",
    "overridable": "cti.overridable",
    "asset": "cti.asset",
    "l10n": "cti.l10n",
}


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object, got {type(data).__name__}")
    return data


def _optional_bool(data: Mapping[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"{key}: expected a boolean, got {type(value).__name__}")


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    raise ValueError(f"{key}: expected a string, got {type(value).__name__}")


def _integer(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValueError(f"{key}: expected an integer, got {type(value).__name__}")


@dataclass
class Annotations:
    """A set of ``cti.*`` annotations found at one place of a schema."""

    id: bool | None = None
    access_field: bool | None = None
    display_name: bool | None = None
    description: bool | None = None
    reference: Any = None  # bool, str or list of str
    overridable: bool | None = None
    asset: bool | None = None
    l10n: bool | None = None
    schema: Any = None  # str or list of str
    meta: str = ""
    property_names: dict[str, Any] | None = None

    def read_cti_schema(self) -> list[str]:
        """Return the ``cti.schema`` identifiers; ``None`` members become ``"null"``."""
        if self.schema is None:
            return []
        if isinstance(self.schema, str):
            return [self.schema]
        if not isinstance(self.schema, list):
            return []
        values = []
        for item in self.schema:
            if isinstance(item, str):
                values.append(item)
            elif item is None:
                values.append("null")
        return values

    def read_reference(self) -> list[str]:
        """Return the ``cti.reference`` values as strings."""
        reference = self.reference
        if isinstance(reference, bool):
            return ["true" if reference else "false"]
        if isinstance(reference, str):
            return [reference]
        if isinstance(reference, list):
            return [item for item in reference if isinstance(item, str)]
        return []

    @classmethod
    def from_dict(cls, data: Any) -> Annotations:
        """Build annotations from their JSON object form; unknown keys are ignored."""
        data = _require_mapping(data, "annotations")
        flags = {attr: _optional_bool(data, key) for attr, key in _BOOL_KEYS.items()}
        property_names = data.get("cti.propertyNames")
        if property_names is not None:
            property_names = dict(_require_mapping(property_names, "cti.propertyNames"))
        return cls(
            reference=data.get("cti.reference"),
            schema=data.get("cti.schema"),
            meta=_string(data, "cti.meta"),
            property_names=property_names,
            **flags,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form, leaving out unset annotations."""
        result: dict[str, Any] = {}
        for attr, key in _BOOL_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        if self.reference is not None:
            result["cti.reference"] = self.reference
        if self.schema is not None:
            result["cti.schema"] = self.schema
        if self.meta:
            result["cti.meta"] = self.meta
        if self.property_names:
            result["cti.propertyNames"] = dict(self.property_names)
        return result


@dataclass
class AnnotationType:
    """The annotation type an instance was defined with."""

    name: str = ""
    type: str = ""  # "object" or "array"
    reference: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> AnnotationType:
        data = _require_mapping(data, "annotation type")
        return cls(
            name=_string(data, "name"),
            type=_string(data, "type"),
            reference=_string(data, "reference"),
        )

    def to_dict(self) -> dict[str, Any]:
        pairs = {"name": self.name, "type": self.type, "reference": self.reference}
        return {key: value for key, value in pairs.items() if value}


def _split_path(expr: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in expr:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ".":
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _walk(value: Any, parts: list[str]) -> Any:
    for position, key in enumerate(parts):
        if isinstance(value, dict):
            if key not in value:
                return _MISSING
            value = value[key]
        elif isinstance(value, list):
            if key == "#":
                rest = parts[position + 1:]
                if not rest:
                    return len(value)
                found = (_walk(item, rest) for item in value)
                return [item for item in found if item is not _MISSING]
            if key.isdigit() and int(key) < len(value):
                value = value[int(key)]
            else:
                return _MISSING
        else:
            return _MISSING
    return value


class GJsonPath(str):
    """A dotted path into a JSON document, such as ``.val.items.#``."""

    def get_value(self, obj: Any) -> Any:
        """Return the value at this path in ``obj``, or ``None`` if it is absent.

        ``obj`` may be JSON text (``str`` or ``bytes``) or an already decoded
        document. A path of ``.`` yields the whole document, and a trailing
        ``.#`` is ignored so that the array itself is returned.
        """
        document = json.loads(obj) if isinstance(obj, (str, bytes, bytearray)) else obj
        expr = self[1:]
        if not expr:
            return document
        if expr.endswith(".#"):
            expr = expr[:-2]
        result = _walk(document, _split_path(expr))
        return None if result is _MISSING else result


@dataclass
class DocumentSourceMap:
    """Where in the source documents an entity was defined."""

    source_path: str = ""
    original_path: str = ""
    line: int = 0

    @staticmethod
    def _document_fields(data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "source_path": _string(data, "$sourcePath"),
            "original_path": _string(data, "$originalPath"),
            "line": _integer(data, "$line"),
        }

    def to_dict(self) -> dict[str, Any]:
        pairs = {
            "$sourcePath": self.source_path,
            "$originalPath": self.original_path,
            "$line": self.line,
        }
        return {key: value for key, value in pairs.items() if value}


@dataclass
class TypeSourceMap(DocumentSourceMap):
    """Source information for an entity type or a traits schema."""

    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> TypeSourceMap:
        data = _require_mapping(data, "source map")
        return cls(name=_string(data, "$name"), **cls._document_fields(data))

    def to_dict(self) -> dict[str, Any]:
        result = {"$name": self.name} if self.name else {}
        result.update(super().to_dict())
        return result


@dataclass
class InstanceSourceMap(DocumentSourceMap):
    """Source information for an entity instance."""

    annotation_type: AnnotationType = field(default_factory=AnnotationType)

    @classmethod
    def from_dict(cls, data: Any) -> InstanceSourceMap:
        data = _require_mapping(data, "source map")
        raw_type = data.get("$annotationType")
        annotation_type = AnnotationType() if raw_type is None else AnnotationType.from_dict(raw_type)
        return cls(annotation_type=annotation_type, **cls._document_fields(data))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"$annotationType": self.annotation_type.to_dict()}
        result.update(super().to_dict())
        return result