"""Test orchestration engine.

Ties the pipeline together: discover helper and spec files, build each
spec file into a subtree through the first matching build strategy,
attach the subtrees under a synthetic root suite, then walk the root
depth-first while fanning lifecycle events out to every reporter.

Each :class:`Engine` owns its registries and discovered-file state, so
several engines can run side by side in one process.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from arbor.config import ScanConfig
from arbor.core.builder import Builder, BuilderRegistry
from arbor.core.composite import Composite
from arbor.core.errors import ConfigError, DiscoveryError, SpecFileNotFoundError
from arbor.core.reporter import HookFailure, Reporter, ReporterRegistry, ReportEvent
from arbor.discovery import Discovery, scan_directory
from arbor.helpers import HelperLoader, load_helpers

logger = logging.getLogger(__name__)

DEFAULT_ROOT_TITLE = "All specs"


class RunState(str, enum.Enum):
    """Phases of one engine run."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    BUILDING = "building"
    TRAVERSING = "traversing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BuildFailure:
    """A spec file that produced no subtree.

    Attributes:
        file_path: The spec file.
        error: The exception raised while resolving it.
    """

    file_path: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class RunResult:
    """Outcome of :meth:`Engine.test` or :meth:`Engine.test_all`.

    Attributes:
        root: Synthetic root suite holding one subtree per built file.
        build_errors: Files skipped because they could not be built.
        reporter_errors: Reporter hooks that raised during the run.
        spec_count: Number of specs visited (root excluded).
        suite_count: Number of suites visited (root excluded).
        duration: Wall-clock seconds spent building and traversing.
    """

    root: Composite
    build_errors: list[BuildFailure] = field(default_factory=list)
    reporter_errors: list[HookFailure] = field(default_factory=list)
    spec_count: int = 0
    suite_count: int = 0
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Return ``True`` if every discovered file was built."""
        return not self.build_errors


class Engine:
    """Discovers, builds, traverses and reports one test tree per run.

    Args:
        discover: Async discovery callable; defaults to
            :func:`~arbor.discovery.scan_directory`.
        helper_loader: Callable loading helper files for their side
            effects; defaults to :func:`~arbor.helpers.load_helpers`.
        root_title: Title given to the synthetic root suite.
    """

    def __init__(
        self,
        discover: Discovery | None = None,
        helper_loader: HelperLoader | None = None,
        root_title: str = DEFAULT_ROOT_TITLE,
    ) -> None:
        self._builders = BuilderRegistry()
        self._reporters = ReporterRegistry()
        self._discover = discover or scan_directory
        self._helper_loader = helper_loader or load_helpers
        self._root_title = root_title
        self._config: ScanConfig | None = None
        self._spec_files: list[str] = []
        self._helper_files: list[str] = []
        self._loaded_helpers: set[str] = set()
        self._state = RunState.IDLE

    # -- registration ---------------------------------------------------------

    def builder(self, strategy: Any) -> Builder:
        """Append a build strategy; earlier registrations take precedence."""
        return self._builders.register(strategy)

    def reporter(self, strategy: Any) -> Reporter:
        """Append a report strategy; every reporter receives every event."""
        return self._reporters.register(strategy)

    @property
    def builders(self) -> BuilderRegistry:
        return self._builders

    @property
    def reporters(self) -> ReporterRegistry:
        return self._reporters

    @property
    def state(self) -> RunState:
        """Return the current run phase."""
        return self._state

    @property
    def spec_files(self) -> list[str]:
        """Return the spec files found by the last scan."""
        return list(self._spec_files)

    @property
    def helper_files(self) -> list[str]:
        """Return the helper files found by the last scan."""
        return list(self._helper_files)

    # -- discovery ------------------------------------------------------------

    async def scan(self, config: ScanConfig | Mapping[str, Any] | None = None) -> None:
        """Discover helper and spec files concurrently, then load helpers.

        The configuration is remembered so later runs can rescan without
        it.

        Raises:
            ConfigError: If *config* is malformed or no configuration is known.
            DiscoveryError: If either pattern cannot be resolved.
            HelperLoadError: If a helper file fails to load.
        """
        if config is not None:
            self._config = ScanConfig.coerce(config)
        if self._config is None:
            raise ConfigError("No scan configuration given")
        cfg = self._config

        self._state = RunState.DISCOVERING
        results = await asyncio.gather(
            self._discover(cfg.helpers, cfg.root),
            self._discover(cfg.specs, cfg.root),
            return_exceptions=True,
        )
        for pattern, outcome in zip((cfg.helpers, cfg.specs), results):
            if isinstance(outcome, BaseException):
                self._state = RunState.FAILED
                if not isinstance(outcome, Exception):
                    raise outcome
                raise DiscoveryError(
                    pattern, f"Discovery failed for {pattern!r}: {outcome}"
                ) from outcome

        helper_files, spec_files = results
        self._helper_files = [_normalize(p) for p in helper_files]
        self._spec_files = [_normalize(p) for p in spec_files]
        logger.info(
            "Discovered %d spec file(s) and %d helper file(s)",
            len(self._spec_files),
            len(self._helper_files),
        )

        # Helper imports are blocking, so they run off the event loop
        pending = [p for p in self._helper_files if p not in self._loaded_helpers]
        if pending:
            try:
                await asyncio.to_thread(self._helper_loader, pending)
            except Exception:
                self._state = RunState.FAILED
                raise
            self._loaded_helpers.update(pending)
        self._state = RunState.IDLE

    # -- running --------------------------------------------------------------

    async def test_all(
        self, config: ScanConfig | Mapping[str, Any] | None = None
    ) -> RunResult:
        """Scan, then build and report every discovered spec file."""
        await self.scan(config)
        return await self._run(self._spec_files)

    async def test(
        self,
        file_path: str | Path,
        config: ScanConfig | Mapping[str, Any] | None = None,
    ) -> RunResult:
        """Scan, then build and report the single spec file *file_path*.

        Raises:
            SpecFileNotFoundError: If *file_path* is not among the
                discovered spec files.
        """
        await self.scan(config)
        target = _normalize(file_path)
        if target not in self._spec_files:
            self._state = RunState.FAILED
            raise SpecFileNotFoundError(file_path)
        return await self._run([target])

    async def build_tree(self, files: list[str]) -> tuple[Composite, list[BuildFailure]]:
        """Build *files* in order and attach each subtree to a fresh root.

        A file that cannot be built is logged, recorded and skipped.
        """
        root = Composite(self._root_title)
        failures: list[BuildFailure] = []
        for file_path in files:
            try:
                subtree = await self._builders.resolve(file_path)
                root.add_child(subtree)
            except Exception as exc:
                logger.warning("Skipping %s: %s", file_path, exc)
                failures.append(BuildFailure(file_path=file_path, error=exc))
        return root, failures

    async def _run(self, files: list[str]) -> RunResult:
        start = time.time()
        self._state = RunState.BUILDING
        root, failures = await self.build_tree(files)
        result = RunResult(root=root, build_errors=failures)

        self._state = RunState.TRAVERSING
        logger.info(
            "Running %d subtree(s) with %d reporter(s)",
            len(root.children),
            len(self._reporters),
        )
        try:
            await self._emit(ReportEvent.STARTED, None, result)
            # An empty root has nothing to report between started and done
            if root.has_children():
                await self._visit(root, result, is_root=True)
            await self._emit(ReportEvent.DONE, None, result)
        except asyncio.CancelledError:
            logger.warning(
                "Run cancelled during traversal; reporters saw a partial run"
            )
            raise

        result.duration = time.time() - start
        self._state = RunState.DONE
        logger.info(
            "Finished %d spec(s) in %d suite(s) in %.2fs (%d build error(s))",
            result.spec_count,
            result.suite_count,
            result.duration,
            len(result.build_errors),
        )
        return result

    async def _visit(
        self, node: Composite, result: RunResult, is_root: bool = False
    ) -> None:
        if node.has_children():
            if not is_root:
                result.suite_count += 1
            logger.debug("Entering suite %r (depth %d)", node.title, node.depth)
            await self._emit(ReportEvent.SUITE_STARTED, node, result)
            for child in node.children.to_list():
                await self._visit(child, result)
            await self._emit(ReportEvent.SUITE_DONE, node, result)
        else:
            result.spec_count += 1
            logger.debug("Running spec %r (depth %d)", node.title, node.depth)
            await self._emit(ReportEvent.SPEC_STARTED, node, result)
            await self._emit(ReportEvent.SPEC_DONE, node, result)

    async def _emit(
        self, event: ReportEvent, node: Composite | None, result: RunResult
    ) -> None:
        result.reporter_errors.extend(await self._reporters.emit(event, node))


def _normalize(file_path: str | Path) -> str:
    return os.path.abspath(os.fspath(file_path))
