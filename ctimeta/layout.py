"""Directory layout of the local package cache.

::

    .cache/
        source/<name>/@v/<version>.info       source integrity info
        package/<package id>/@v/<version>.info package integrity info
    <package id>/@<version>/                  installed package
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

APP_ENVIRON_VAR = "CTIROOT"
APP_USER_DIR = ".cti"

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class CacheLayout:
    """Paths inside a package cache rooted at ``packages_dir``."""

    packages_dir: Path

    def __post_init__(self) -> None:
        self.packages_dir = Path(self.packages_dir)

    @property
    def source_cache_dir(self) -> Path:
        return self.packages_dir / ".cache" / "source"

    @property
    def package_cache_dir(self) -> Path:
        return self.packages_dir / ".cache" / "package"

    def package_dir(self, pkg_id: str, version: str) -> Path:
        """Directory an installed package version lives in."""
        return self.packages_dir / pkg_id / f"@{version}"

    def source_info_path(self, name: str, version: str) -> Path:
        """File holding the integrity info of a source version."""
        return self.source_cache_dir / name / "@v" / f"{version}.info"

    def package_info_path(self, pkg_id: str, version: str) -> Path:
        """File holding the integrity info of a package version."""
        return self.package_cache_dir / pkg_id / "@v" / f"{version}.info"


def get_root_dir() -> Path:
    """Return the application root directory, creating it if needed.

    It is taken from ``$CTIROOT`` or defaults to ``~/.cti``.
    """
    root = os.environ.get(APP_ENVIRON_VAR, "")
    root_dir = Path(root) if root else Path.home() / APP_USER_DIR
    if not root_dir.exists():
        try:
            root_dir.mkdir(mode=0o755)
        except OSError as exc:
            raise OSError(f"create root dir: {exc}") from exc
    return root_dir


def get_packages_cache_dir() -> Path:
    """Return the package cache directory below the root, creating it if needed."""
    cache_dir = get_root_dir() / "src"
    if not cache_dir.exists():
        try:
            cache_dir.mkdir()
        except OSError as exc:
            raise OSError(f"create package cache dir: {exc}") from exc
    return cache_dir