"""Default discovery collaborator: glob patterns to file paths.

The engine accepts any callable with the :data:`Discovery` signature;
:func:`scan_directory` is the filesystem implementation used when none
is supplied.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# Async callable: (pattern, root) -> ordered absolute file paths
Discovery = Callable[[str | None, Path | None], Awaitable[list[str]]]


def expand_pattern(pattern: str, root: Path) -> list[str]:
    """Return sorted absolute paths of regular files matching *pattern*.

    Relative patterns are anchored at *root*; absolute patterns at their
    filesystem anchor.  ``**`` matches any number of directories.
    """
    candidate = Path(pattern).expanduser()
    if candidate.is_absolute():
        anchor = Path(candidate.anchor)
        relative = str(candidate.relative_to(anchor))
    else:
        anchor = root
        relative = pattern
    if not relative or relative == ".":
        return []
    matches = {os.path.abspath(p) for p in anchor.glob(relative) if p.is_file()}
    return sorted(matches)


async def scan_directory(
    pattern: str | None, root: Path | None = None
) -> list[str]:
    """Resolve *pattern* to absolute file paths without blocking the loop.

    Args:
        pattern: Glob pattern; ``None`` or empty yields no files.
        root: Base directory for relative patterns (working directory
            when ``None``).

    Returns:
        Sorted absolute paths, identical across calls for the same
        filesystem state.

    Raises:
        OSError: If the filesystem walk fails.
    """
    if not pattern:
        return []
    base = Path(root) if root is not None else Path.cwd()
    files = await asyncio.to_thread(expand_pattern, pattern, base)
    logger.debug("Pattern %r matched %d file(s) under %s", pattern, len(files), base)
    return files
