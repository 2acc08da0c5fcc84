"""Error hierarchy for the arbor test-orchestration engine.

Every error raised by the engine derives from :class:`ArborError` so
callers can catch the whole family at once.  Several classes also derive
from the closest built-in exception (``TypeError``, ``LookupError``,
``FileNotFoundError``, ``ValueError``) so existing ``except`` clauses
keep working.
"""

from __future__ import annotations

from pathlib import Path


class ArborError(Exception):
    """Base exception for all arbor errors."""


class TypeMismatchError(ArborError, TypeError):
    """A value of the wrong type was handed to a collection or node.

    Also raised when attaching a node that already has a parent, or that
    would create a cycle.
    """


class NotFoundError(ArborError, LookupError):
    """A node was detached from a parent it does not belong to."""


class NoBuilderFoundError(ArborError):
    """No registered build strategy matches a spec file.

    Attributes:
        file_path: The spec file nobody claimed.
    """

    def __init__(self, file_path: str | Path) -> None:
        super().__init__(f"No builder matches spec file: {file_path}")
        self.file_path = str(file_path)


class SpecFileNotFoundError(ArborError, FileNotFoundError):
    """A single-file run was requested for a path that was not discovered.

    Attributes:
        file_path: The requested path.
    """

    def __init__(self, file_path: str | Path) -> None:
        super().__init__(f"Spec file not among discovered specs: {file_path}")
        self.file_path = str(file_path)


class DiscoveryError(ArborError):
    """The discovery collaborator failed to resolve a pattern.

    Attributes:
        pattern: The pattern that could not be resolved.
    """

    def __init__(self, pattern: str | None, message: str = "") -> None:
        super().__init__(message or f"Discovery failed for pattern: {pattern!r}")
        self.pattern = pattern


class HelperLoadError(ArborError):
    """A helper file raised while being loaded.

    Attributes:
        file_path: The helper file that failed.
    """

    def __init__(self, file_path: str | Path, message: str = "") -> None:
        super().__init__(message or f"Failed to load helper file: {file_path}")
        self.file_path = str(file_path)


class ConfigError(ArborError, ValueError):
    """Malformed or missing scan configuration."""
