"""Arbor - pluggable test orchestration.

Discovers spec files, turns each one into a tree of suites and specs
through interchangeable build strategies, walks the tree and reports
every step to interchangeable report strategies.

Example::

    engine = Engine()
    engine.builder(JsonBuildStrategy())
    engine.reporter(ConsoleReportStrategy())
    result = await engine.test_all({"specs": "specs/**/*.json"})
"""

from arbor.config import ScanConfig
from arbor.core import (
    ArborError,
    Builder,
    BuilderRegistry,
    BuildStrategy,
    Composite,
    ConfigError,
    DiscoveryError,
    HelperLoadError,
    HookFailure,
    NoBuilderFoundError,
    NotFoundError,
    ReportEvent,
    Reporter,
    ReporterRegistry,
    ReportStrategy,
    SpecFileNotFoundError,
    TypedCollection,
    TypeMismatchError,
)
from arbor.discovery import scan_directory
from arbor.engine import BuildFailure, Engine, RunResult, RunState
from arbor.strategies import (
    ConsoleReportStrategy,
    HttpReportStrategy,
    JsonBuildStrategy,
    RecordingReportStrategy,
)

__all__ = [
    "ArborError",
    "Builder",
    "BuilderRegistry",
    "BuildFailure",
    "BuildStrategy",
    "Composite",
    "ConfigError",
    "ConsoleReportStrategy",
    "DiscoveryError",
    "Engine",
    "HelperLoadError",
    "HookFailure",
    "HttpReportStrategy",
    "JsonBuildStrategy",
    "NoBuilderFoundError",
    "NotFoundError",
    "RecordingReportStrategy",
    "ReportEvent",
    "Reporter",
    "ReporterRegistry",
    "ReportStrategy",
    "RunResult",
    "RunState",
    "ScanConfig",
    "SpecFileNotFoundError",
    "TypedCollection",
    "TypeMismatchError",
    "scan_directory",
]
