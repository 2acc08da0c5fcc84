"""Side-effect loading of helper files.

Helper files register shared fixtures, custom assertions and the like.
They are imported once per engine and never become part of the test
tree.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Callable, Iterable

from arbor.core.errors import HelperLoadError

logger = logging.getLogger(__name__)

# Callable receiving helper paths and loading them for their side effects
HelperLoader = Callable[[list[str]], object]


def helper_module_name(file_path: str | Path) -> str:
    """Return the stable ``sys.modules`` key used for a helper file."""
    digest = hashlib.sha1(str(Path(file_path).resolve()).encode()).hexdigest()[:12]
    return f"arbor_helper_{Path(file_path).stem}_{digest}"


def load_helper(file_path: str | Path) -> ModuleType:
    """Import the Python file at *file_path* and return the module.

    Raises:
        HelperLoadError: If the file cannot be imported or raises while
            executing.
    """
    path = Path(file_path)
    name = helper_module_name(path)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise HelperLoadError(path, f"Cannot import helper file: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        raise HelperLoadError(path, f"Helper file {path} raised: {exc}") from exc
    return module


def load_helpers(paths: Iterable[str]) -> list[ModuleType]:
    """Load every ``.py`` helper in *paths*, in order.

    Files with other suffixes are skipped.
    """
    modules: list[ModuleType] = []
    for file_path in paths:
        if Path(file_path).suffix != ".py":
            logger.debug("Skipping non-Python helper %s", file_path)
            continue
        logger.debug("Loading helper %s", file_path)
        modules.append(load_helper(file_path))
    return modules
