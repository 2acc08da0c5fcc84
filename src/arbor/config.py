"""Scan configuration.

A :class:`ScanConfig` names two glob patterns: one for helper files,
loaded for their side effects, and one for spec files, built into the
test tree.  Configurations can come from a mapping, a JSON file, or
environment variables.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from arbor.core.errors import ConfigError

ENV_HELPERS = "ARBOR_HELPERS"
ENV_SPECS = "ARBOR_SPECS"
ENV_ROOT = "ARBOR_ROOT"

_KNOWN_KEYS = frozenset({"helpers", "specs", "root"})


@dataclass(frozen=True)
class ScanConfig:
    """Patterns used to discover helper and spec files.

    Attributes:
        specs: Glob pattern for spec files (``**`` allowed).
        helpers: Glob pattern for helper files, or ``None`` for none.
        root: Base directory for relative patterns; the working
            directory when ``None``.
    """

    specs: str
    helpers: str | None = None
    root: Path | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.specs, str) or not self.specs.strip():
            raise ConfigError("'specs' must be a non-empty pattern string")
        if self.helpers is not None and not isinstance(self.helpers, str):
            raise ConfigError("'helpers' must be a pattern string")
        if self.root is not None and not isinstance(self.root, Path):
            object.__setattr__(self, "root", Path(self.root))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScanConfig:
        """Build a config from a mapping such as ``{"specs": "specs/**/*.json"}``.

        Raises:
            ConfigError: On unknown keys, a missing ``specs`` key, or
                values of the wrong type.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Scan config must be a mapping, got {type(data).__name__}"
            )
        unknown = set(data) - _KNOWN_KEYS
        if unknown:
            raise ConfigError(f"Unknown scan config keys: {sorted(unknown)}")
        if "specs" not in data:
            raise ConfigError("Scan config is missing required key 'specs'")
        root = data.get("root")
        if root is not None and not isinstance(root, (str, Path)):
            raise ConfigError("'root' must be a path string")
        return cls(
            specs=data["specs"],
            helpers=data.get("helpers") or None,
            root=Path(root) if root else None,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> ScanConfig:
        """Load a config from a JSON file.

        A relative ``root`` inside the file is resolved against the
        file's directory.

        Raises:
            ConfigError: If the file is not valid JSON or not a valid config.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        config = cls.from_dict(data)
        if config.root is not None and config.root.is_absolute():
            return config
        root = path.parent / config.root if config.root else path.parent
        return cls(specs=config.specs, helpers=config.helpers, root=root)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ScanConfig:
        """Build a config from ``ARBOR_SPECS``, ``ARBOR_HELPERS`` and ``ARBOR_ROOT``.

        Raises:
            ConfigError: If ``ARBOR_SPECS`` is unset.
        """
        env = os.environ if environ is None else environ
        specs = env.get(ENV_SPECS, "")
        if not specs:
            raise ConfigError(f"{ENV_SPECS} is not set")
        root = env.get(ENV_ROOT)
        return cls(
            specs=specs,
            helpers=env.get(ENV_HELPERS) or None,
            root=Path(root) if root else None,
        )

    @classmethod
    def coerce(cls, value: ScanConfig | Mapping[str, Any]) -> ScanConfig:
        """Return *value* as a :class:`ScanConfig`, converting mappings."""
        if isinstance(value, ScanConfig):
            return value
        return cls.from_dict(value)
