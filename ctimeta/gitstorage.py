"""Package storage backed by git repositories found through go-import meta tags."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import urllib.parse
import urllib.request
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

import semver

from .storage import Origin, Storage

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_GO_IMPORT_RE = re.compile(r'<meta name="go-import" content="([^"]+)')

PathLike = Union[str, "os.PathLike[str]"]


def _run_git(args: list[str], what: str) -> str:
    command = ["git", *args]
    logger.info("Executing %s", " ".join(command))
    try:
        completed = subprocess.run(command, capture_output=True, check=True)
    except (subprocess.CalledProcessError, OSError) as exc:
        raise RuntimeError(f"{what}: {exc}") from exc
    output = completed.stdout
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output or ""


def git_archive(remote: str, ref: str, destination: PathLike) -> None:
    """Fetch ``ref`` of the ``remote`` repository as an archive at ``destination``."""
    _run_git(["archive", "--remote", remote, ref, "-o", os.fspath(destination)], "git archive")


def git_ls_remote(remote: str, ref: str) -> str:
    """Return the commit hash ``ref`` points to in ``remote``; empty if not found."""
    output = _run_git(["ls-remote", remote, ref], "git ls-remote")
    return _WS_RE.sub(" ", output).split(" ")[0]


def parse_go_query(go_query: str) -> tuple[str, str, str]:
    """Split a go-import value into import prefix, VCS and repository location."""
    parts = go_query.split(" ")
    if len(parts) < 3:
        raise ValueError(f"malformed go-import value: {go_query!r}")
    return parts[0], parts[1], parts[2]


def find_go_import(body: Union[str, bytes]) -> str | None:
    """Return the content of the go-import meta tag in an HTML page, if any."""
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    match = _GO_IMPORT_RE.search(body)
    return None if match is None else match.group(1)


def discover_source(source: str) -> bytes:
    """Fetch ``source`` with ``go-get=1`` added to its query and return the body."""
    parsed = urllib.parse.urlsplit(source)
    query = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
    query.append(("go-get", "1"))
    query.sort(key=lambda pair: pair[0])
    url = f"{source}?{urllib.parse.urlencode(query)}"
    with urllib.request.urlopen(url) as response:
        return response.read()


def _base_name(path: str) -> str:
    stripped = path.rstrip("/")
    if not stripped:
        return "/" if path else "."
    return os.path.basename(stripped)


def _secure_unzip(archive: Path, destination: Path) -> None:
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zipped:
        for member in zipped.infolist():
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"illegal file path in archive: {member.filename}")
            if member.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zipped.open(member) as src, target.open("wb") as dst:
                while chunk := src.read(1 << 16):
                    dst.write(chunk)


@dataclass
class GitInfo(Origin):
    """A package version located at a commit of a git repository."""

    name: str = ""
    vcs: str = ""
    url: str = ""
    hash: str = ""
    ref: str = ""

    def validate(self, other: Origin) -> None:
        """Check that ``other`` points at the same repository, commit and ref."""
        if not isinstance(other, GitInfo):
            raise TypeError("origin is not a gitInfo")
        for label, mine, theirs in (
            ("vcs", self.vcs, other.vcs),
            ("url", self.url, other.url),
            ("hash", self.hash, other.hash),
            ("ref", self.ref, other.ref),
        ):
            if mine != theirs:
                raise ValueError(f"{label} mismatch: {mine} != {theirs}")

    def download(self, cache_dir: PathLike) -> str:
        """Archive the ref into ``cache_dir``, unpack it and return the package directory."""
        cache = Path(cache_dir)
        filename = f"{_base_name(self.name)}-{self.ref}-{self.hash[:8]}.zip"
        cache_zip = cache / os.path.dirname(self.name) / filename
        cache_zip.parent.mkdir(parents=True, exist_ok=True)

        git_archive(self.url, self.ref, cache_zip)

        dest_dir = cache / "package"
        dest_dir.mkdir(parents=True, exist_ok=True)
        try:
            _secure_unzip(cache_zip, dest_dir)
        except (ValueError, OSError, zipfile.BadZipFile) as exc:
            raise ValueError(f"unzip {cache_zip} to {dest_dir}: {exc}") from exc
        return str(dest_dir)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "VCS": self.vcs,
            "URL": self.url,
            "Hash": self.hash,
            "Ref": self.ref,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GitInfo:
        values = {}
        for attr, key in (("name", "Name"), ("vcs", "VCS"), ("url", "URL"), ("hash", "Hash"), ("ref", "Ref")):
            value = data.get(key) or ""
            if not isinstance(value, str):
                raise ValueError(f"{key}: expected a string, got {type(value).__name__}")
            values[attr] = value
        return cls(**values)


class GitStorage(Storage):
    """Finds package versions in git repositories announced by go-import tags."""

    def empty_origin(self) -> GitInfo:
        return GitInfo()

    def discover(self, name: str, version: str) -> GitInfo:
        """Resolve ``version`` of package ``name`` to a repository commit."""
        try:
            semver.Version.parse(version)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid version {version}") from exc

        source = f"https://{name}"
        try:
            body = discover_source(source)
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"discover source at {source}: {exc}") from exc

        go_import = find_go_import(body)
        if go_import is None:
            raise ValueError(f"find go-import at {source}")
        _, _, location = parse_go_query(go_import)

        commit_hash = git_ls_remote(location, version)
        if not commit_hash:
            raise ValueError(f"failed to find {location} {version}")

        return GitInfo(vcs="git", url=location, hash=commit_hash, ref=version)