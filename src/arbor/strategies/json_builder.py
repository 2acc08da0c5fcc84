"""Build strategy for JSON spec files.

Expected document shape::

    {
        "title": "Login page",
        "specs": [
            {"title": "renders the form"},
            {"title": "validation", "specs": [{"title": "rejects empty password"}]}
        ]
    }

Every entry needs a string ``title``; ``specs`` is optional and nests
arbitrarily deep.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from arbor.core.composite import Composite

DEFAULT_PATTERN = r"\.json$"


class JsonBuildStrategy:
    """Parses ``*.json`` spec files into composite trees."""

    def __init__(self, pattern: str = DEFAULT_PATTERN) -> None:
        self._pattern = re.compile(pattern)

    def matches(self, file_path: str) -> bool:
        return bool(self._pattern.search(file_path))

    def build(self, file_path: str) -> Composite:
        """Read *file_path* and return its tree.

        Raises:
            ValueError: If the file is not valid JSON or not a valid
                spec document.
        """
        path = Path(file_path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
        return build_from_data(data, source=str(path))


def build_from_data(data: Any, source: str = "<inline>", where: str = "$") -> Composite:
    """Convert a parsed spec document into a :class:`Composite` tree.

    Args:
        data: The parsed document (or a nested entry of it).
        source: Source identifier for error messages.
        where: Location of *data* inside the document.

    Raises:
        ValueError: If an entry is not a mapping, lacks a string
            ``title``, or has a non-list ``specs``.
    """
    if not isinstance(data, dict):
        raise ValueError(
            f"Spec entry at {where} must be an object, got {type(data).__name__} ({source})"
        )
    title = data.get("title")
    if not isinstance(title, str):
        raise ValueError(f"Missing string field 'title' at {where} ({source})")

    node = Composite(title)
    children = data.get("specs", [])
    if not isinstance(children, list):
        raise ValueError(f"'specs' at {where} must be a list ({source})")
    for index, child in enumerate(children):
        node.add_child(build_from_data(child, source, f"{where}.specs[{index}]"))
    return node
