"""Rewriting of relative dependency links inside RAML files."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

RAML_EXT = ".raml"
DEPENDENCY_DIR_NAME = ".dep"
RAMLX_DIR_NAME = ".ramlx"


def _link_pattern(dir_name: str) -> re.Pattern[str]:
    return re.compile(r"(?:..\/)*(" + re.escape(dir_name) + r")\/")


PATCH_DEPS_RE = _link_pattern(DEPENDENCY_DIR_NAME)
PATCH_RAMLX_RE = _link_pattern(RAMLX_DIR_NAME)


def replace_capture_group(
    pattern: Union[str, re.Pattern[str]], text: str, replacement: str, group: int
) -> str:
    """Replace capture group ``group`` of every match of ``pattern`` in ``text``."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    pieces: list[str] = []
    previous_end = 0
    for match in regex.finditer(text):
        pieces.append(text[previous_end:match.start(group)])
        pieces.append(replacement)
        previous_end = match.end(group)
    pieces.append(text[previous_end:])
    return "".join(pieces)


def patch_relative_links(directory: Union[str, "os.PathLike[str]"]) -> None:
    """Point dependency and RAML extension links of every ``.raml`` file two levels up."""
    for root, _dirs, files in os.walk(directory):
        for name in files:
            if os.path.splitext(name)[1] != RAML_EXT:
                continue
            path = Path(root) / name
            content = path.read_text(encoding="utf-8", errors="surrogateescape")
            content = replace_capture_group(PATCH_DEPS_RE, content, "../../" + DEPENDENCY_DIR_NAME, 1)
            content = replace_capture_group(PATCH_RAMLX_RE, content, "../../" + RAMLX_DIR_NAME, 1)
            path.write_text(content, encoding="utf-8", errors="surrogateescape")