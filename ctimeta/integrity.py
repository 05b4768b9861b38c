"""Integrity records kept in the package cache for sources and packages."""

from __future__ import annotations

import errno
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .layout import CacheLayout
from .storage import Origin, Storage


def _read_json_object(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(errno.ENOENT, "integrity info not found", str(path))
    with path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=4) + "\n", encoding="utf-8")


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {type(value).__name__}")
    return value


@dataclass
class SourceIntegrityInfo:
    """What a source version resolved to when it was first downloaded."""

    version: str
    time: str
    origin: Origin

    @classmethod
    def load(
        cls, layout: CacheLayout, source: str, version: str, origin_type: type[Origin]
    ) -> SourceIntegrityInfo:
        """Read the record; raises ``FileNotFoundError`` if there is none."""
        path = layout.source_info_path(source, version)
        try:
            data = _read_json_object(path)
            raw_origin = data.get("Origin") or {}
            if not isinstance(raw_origin, dict):
                raise ValueError("Origin: expected a JSON object")
            return cls(
                version=_text(data, "Version"),
                time=_text(data, "Time"),
                origin=origin_type.from_dict(raw_origin),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise ValueError(f"read origin info {path}: {exc}") from exc

    def save(self, layout: CacheLayout, source: str, version: str) -> None:
        """Write the record, creating its directory."""
        _write_json(
            layout.source_info_path(source, version),
            {"Version": self.version, "Time": self.time, "Origin": self.origin.to_dict()},
        )


@dataclass
class PackageIntegrityInfo:
    """The source and content hash of a cached package version."""

    source: str
    version: str
    hash: str

    @classmethod
    def load(cls, layout: CacheLayout, pkg_id: str, version: str) -> PackageIntegrityInfo:
        """Read the record; raises ``FileNotFoundError`` if there is none."""
        path = layout.package_info_path(pkg_id, version)
        try:
            data = _read_json_object(path)
            return cls(
                source=_text(data, "Source"),
                version=_text(data, "Version"),
                hash=_text(data, "Hash"),
            )
        except ValueError as exc:
            raise ValueError(f"read {path}: {exc}") from exc

    def save(self, layout: CacheLayout, pkg_id: str, version: str) -> None:
        """Write the record, creating its directory."""
        _write_json(
            layout.package_info_path(pkg_id, version),
            {"Source": self.source, "Version": self.version, "Hash": self.hash},
        )


def validate_source_information(
    layout: CacheLayout, storage: Storage, source: str, version: str, origin: Origin
) -> None:
    """Check a freshly discovered origin against the recorded one, if any."""
    origin_type = type(storage.empty_origin())
    try:
        stored = SourceIntegrityInfo.load(layout, source, version, origin_type)
    except FileNotFoundError:
        return
    except ValueError as exc:
        raise ValueError(f"read source info: {exc}") from exc
    try:
        stored.origin.validate(origin)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"integrity check failed: {exc}") from exc