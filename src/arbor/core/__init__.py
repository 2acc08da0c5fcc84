"""Core building blocks: typed collection, composite node, registries, errors."""

from arbor.core.builder import Builder, BuilderRegistry, BuildStrategy
from arbor.core.collection import TypedCollection
from arbor.core.composite import Composite
from arbor.core.errors import (
    ArborError,
    ConfigError,
    DiscoveryError,
    HelperLoadError,
    NoBuilderFoundError,
    NotFoundError,
    SpecFileNotFoundError,
    TypeMismatchError,
)
from arbor.core.reporter import (
    HookFailure,
    ReportEvent,
    Reporter,
    ReporterRegistry,
    ReportStrategy,
)

__all__ = [
    "ArborError",
    "Builder",
    "BuilderRegistry",
    "BuildStrategy",
    "Composite",
    "ConfigError",
    "DiscoveryError",
    "HelperLoadError",
    "HookFailure",
    "NoBuilderFoundError",
    "NotFoundError",
    "ReportEvent",
    "Reporter",
    "ReporterRegistry",
    "ReportStrategy",
    "SpecFileNotFoundError",
    "TypeMismatchError",
    "TypedCollection",
]
