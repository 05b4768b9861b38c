"""Abstract sources that CTI packages are discovered in and downloaded from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class Origin(ABC):
    """Where one version of a package comes from, and how to fetch it."""

    def validate(self, other: Origin) -> None:
        """Check that ``other`` describes the same origin as this one.

        The default compares every field of :meth:`to_dict`. Raises
        ``TypeError`` if ``other`` is a different kind of origin and
        ``ValueError`` naming the first field that differs.
        """
        if type(other) is not type(self):
            raise TypeError(f"origin is not a {type(self).__name__}")
        mine = self.to_dict()
        theirs = other.to_dict()
        for key in dict.fromkeys([*mine, *theirs]):
            if mine.get(key) != theirs.get(key):
                raise ValueError(f"{key.lower()} mismatch: {mine.get(key)} != {theirs.get(key)}")

    @abstractmethod
    def download(self, cache_dir: str) -> str:
        """Fetch the package below ``cache_dir`` and return the directory holding it."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of this origin."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Origin:
        """Build an origin from its JSON object form."""


class Storage(ABC):
    """A place where package versions can be looked up."""

    @abstractmethod
    def empty_origin(self) -> Origin:
        """Return a blank origin of the kind this storage produces."""

    @abstractmethod
    def discover(self, name: str, version: str) -> Origin:
        """Locate ``version`` of the package ``name`` and return its origin."""