"""Tests for the orchestration engine."""

import asyncio
import logging
import threading
from pathlib import Path

import pytest

from arbor.config import ScanConfig
from arbor.core.composite import Composite
from arbor.core.errors import (
    ConfigError,
    DiscoveryError,
    HelperLoadError,
    NoBuilderFoundError,
    SpecFileNotFoundError,
)
from arbor.core.reporter import ReportEvent
from arbor.engine import Engine, RunState
from arbor.strategies.json_builder import JsonBuildStrategy
from arbor.strategies.recording_reporter import RecordingReportStrategy

SPECS = ["/specs/a.tree", "/specs/b.tree", "/specs/c.tree"]
HELPERS = ["/helpers/setup.py"]


class FakeDiscovery:
    """Discovery double mapping patterns to fixed file lists."""

    def __init__(self, files: dict[str, list[str]], fail: str | None = None) -> None:
        self._files = files
        self._fail = fail
        self.calls: list[str | None] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, pattern: str | None, root: Path | None = None) -> list[str]:
        self.calls.append(pattern)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if pattern is not None and pattern == self._fail:
            raise OSError(f"cannot read {pattern}")
        return list(self._files.get(pattern or "", []))


class TreeStrategy:
    """Builds a fixed tree per path, described as nested tuples."""

    def __init__(self, trees: dict[str, tuple], suffix: str = ".tree") -> None:
        self._trees = trees
        self._suffix = suffix
        self.built: list[str] = []

    def matches(self, file_path: str) -> bool:
        return file_path.endswith(self._suffix) and file_path in self._trees

    def build(self, file_path: str) -> Composite:
        self.built.append(file_path)
        return _make_tree(self._trees[file_path])


class HelperRecorder:
    def __init__(self) -> None:
        self.loaded: list[list[str]] = []

    def __call__(self, paths: list[str]) -> None:
        self.loaded.append(list(paths))


def _make_tree(spec: tuple) -> Composite:
    title, *children = spec
    node = Composite(title)
    for child in children:
        node.add_child(_make_tree(child))
    return node


def _events(recorder: RecordingReportStrategy) -> list[tuple[str, str | None]]:
    return [(e.event.value, e.title) for e in recorder.events]


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery({"specs/*": SPECS, "helpers/*": HELPERS})


@pytest.fixture
def helpers() -> HelperRecorder:
    return HelperRecorder()


@pytest.fixture
def config() -> ScanConfig:
    return ScanConfig(specs="specs/*", helpers="helpers/*")


@pytest.fixture
def engine(discovery: FakeDiscovery, helpers: HelperRecorder) -> Engine:
    return Engine(discover=discovery, helper_loader=helpers, root_title="R")


class TestScan:
    async def test_discovers_both_patterns_concurrently(
        self, engine: Engine, discovery: FakeDiscovery, config: ScanConfig
    ) -> None:
        await engine.scan(config)
        assert sorted(discovery.calls) == ["helpers/*", "specs/*"]
        assert discovery.max_in_flight == 2
        assert engine.spec_files == SPECS
        assert engine.helper_files == HELPERS
        assert engine.state is RunState.IDLE

    async def test_loads_helpers_once(
        self, engine: Engine, helpers: HelperRecorder, config: ScanConfig
    ) -> None:
        await engine.scan(config)
        await engine.scan(config)
        assert helpers.loaded == [HELPERS]

    async def test_loads_helpers_off_the_event_loop(
        self, discovery: FakeDiscovery, config: ScanConfig
    ) -> None:
        threads: list[int] = []
        engine = Engine(
            discover=discovery,
            helper_loader=lambda paths: threads.append(threading.get_ident()),
        )
        await engine.scan(config)
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()

    async def test_accepts_mapping(self, engine: Engine) -> None:
        await engine.scan({"specs": "specs/*"})
        assert engine.spec_files == SPECS
        assert engine.helper_files == []

    async def test_malformed_config_is_fatal(self, engine: Engine) -> None:
        with pytest.raises(ConfigError):
            await engine.scan({"spec": "typo"})

    async def test_scan_without_any_config_raises(self, engine: Engine) -> None:
        with pytest.raises(ConfigError):
            await engine.scan()

    async def test_discovery_failure_is_fatal(self, helpers: HelperRecorder) -> None:
        discovery = FakeDiscovery({"helpers/*": HELPERS}, fail="specs/*")
        engine = Engine(discover=discovery, helper_loader=helpers)
        with pytest.raises(DiscoveryError) as excinfo:
            await engine.scan(ScanConfig(specs="specs/*", helpers="helpers/*"))
        assert excinfo.value.pattern == "specs/*"
        assert isinstance(excinfo.value.__cause__, OSError)
        assert engine.state is RunState.FAILED
        assert helpers.loaded == []

    async def test_helper_failure_is_fatal(self, discovery: FakeDiscovery) -> None:
        def broken_loader(paths: list[str]) -> None:
            raise HelperLoadError(paths[0])

        engine = Engine(discover=discovery, helper_loader=broken_loader)
        with pytest.raises(HelperLoadError):
            await engine.scan(ScanConfig(specs="specs/*", helpers="helpers/*"))
        assert engine.state is RunState.FAILED


class TestTestAll:
    async def test_traversal_order_and_pairing(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        engine.builder(
            TreeStrategy(
                {
                    "/specs/a.tree": ("A", ("A1",)),
                    "/specs/b.tree": ("B",),
                }
            )
        )
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        result = await engine.test_all(config)

        assert _events(recorder) == [
            ("started", None),
            ("suite_started", "R"),
            ("suite_started", "A"),
            ("spec_started", "A1"),
            ("spec_done", "A1"),
            ("suite_done", "A"),
            ("spec_started", "B"),
            ("spec_done", "B"),
            ("suite_done", "R"),
            ("done", None),
        ]
        assert result.spec_count == 2
        assert result.suite_count == 1
        assert engine.state is RunState.DONE

    async def test_events_are_stack_balanced(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        engine.builder(
            TreeStrategy(
                {
                    "/specs/a.tree": ("A", ("A1", ("A1a",), ("A1b",)), ("A2",)),
                    "/specs/b.tree": ("B", ("B1",)),
                    "/specs/c.tree": ("C",),
                }
            )
        )
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        await engine.test_all(config)

        stack: list[str] = []
        for record in recorder.events[1:-1]:
            if record.event in (ReportEvent.SUITE_STARTED, ReportEvent.SPEC_STARTED):
                stack.append(record.title)
                assert record.depth == len(stack)
            else:
                assert stack.pop() == record.title
        assert stack == []

    async def test_depth_payload_counts_from_synthetic_root(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        engine.builder(TreeStrategy({"/specs/a.tree": ("A", ("A1", ("deep",)))}))
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        await engine.test_all(config)

        depths = {e.title: e.depth for e in recorder.events if e.title}
        assert depths == {"R": 1, "A": 2, "A1": 3, "deep": 4}

    async def test_unbuildable_file_is_isolated(
        self, engine: Engine, config: ScanConfig, caplog
    ) -> None:
        strategy = TreeStrategy(
            {"/specs/a.tree": ("A",), "/specs/c.tree": ("C",)}
        )
        engine.builder(strategy)
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        with caplog.at_level(logging.WARNING, logger="arbor.engine"):
            result = await engine.test_all(config)

        assert [c.title for c in result.root.children] == ["A", "C"]
        assert len(result.build_errors) == 1
        assert result.build_errors[0].file_path == "/specs/b.tree"
        assert isinstance(result.build_errors[0].error, NoBuilderFoundError)
        assert result.ok is False
        assert recorder.events[-1].event is ReportEvent.DONE
        assert "Skipping /specs/b.tree" in caplog.text

    async def test_builder_exception_is_isolated(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        class Flaky(TreeStrategy):
            def build(self, file_path: str) -> Composite:
                if file_path == "/specs/a.tree":
                    raise ValueError("malformed")
                return super().build(file_path)

        engine.builder(
            Flaky({p: (Path(p).stem,) for p in SPECS})
        )
        result = await engine.test_all(config)
        assert [c.title for c in result.root.children] == ["b", "c"]
        assert str(result.build_errors[0].error) == "malformed"

    async def test_builds_in_discovery_order(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        strategy = TreeStrategy({p: (p,) for p in SPECS})
        engine.builder(strategy)
        result = await engine.test_all(config)
        assert strategy.built == SPECS
        assert [c.title for c in result.root.children] == SPECS

    async def test_subtree_paths_are_rooted_at_synthetic_root(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        engine.builder(TreeStrategy({"/specs/a.tree": ("A", ("A1",))}))
        result = await engine.test_all(config)
        a1 = result.root.get_child(0).get_child(0)
        assert a1.path.to_list() == [result.root, result.root.get_child(0), a1]

    async def test_first_registered_builder_wins(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        first = TreeStrategy({p: ("first",) for p in SPECS})
        second = TreeStrategy({p: ("second",) for p in SPECS})
        engine.builder(first)
        engine.builder(second)
        result = await engine.test_all(config)
        assert {c.title for c in result.root.children} == {"first"}
        assert second.built == []

    async def test_no_files_emits_only_started_and_done(
        self, helpers: HelperRecorder
    ) -> None:
        engine = Engine(discover=FakeDiscovery({}), helper_loader=helpers)
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)
        result = await engine.test_all({"specs": "nothing/*"})
        assert _events(recorder) == [("started", None), ("done", None)]
        assert result.root.has_children() is False

    async def test_reporters_observe_identical_order(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        engine.builder(TreeStrategy({"/specs/a.tree": ("A", ("A1",), ("A2",))}))
        shared: list = []
        engine.reporter(RecordingReportStrategy(shared, label="r1"))
        engine.reporter(RecordingReportStrategy(shared, label="r2"))

        await engine.test_all(config)

        assert [e.reporter for e in shared] == ["r1", "r2"] * (len(shared) // 2)
        r1 = [(e.event, e.title) for e in shared if e.reporter == "r1"]
        r2 = [(e.event, e.title) for e in shared if e.reporter == "r2"]
        assert r1 == r2

    async def test_reporter_failure_does_not_abort_run(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        class Broken:
            def suite_started(self, node: Composite) -> None:
                raise RuntimeError("reporter down")

        engine.builder(TreeStrategy({"/specs/a.tree": ("A", ("A1",))}))
        engine.reporter(Broken())
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        result = await engine.test_all(config)

        assert recorder.events[-1].event is ReportEvent.DONE
        assert len(result.reporter_errors) == 2
        assert {f.title for f in result.reporter_errors} == {"R", "A"}
        assert len(result.build_errors) == 2

    async def test_reuses_remembered_config(
        self, engine: Engine, discovery: FakeDiscovery, config: ScanConfig
    ) -> None:
        engine.builder(TreeStrategy({p: (p,) for p in SPECS}))
        await engine.scan(config)
        result = await engine.test_all()
        assert len(result.root.children) == 3
        assert discovery.calls.count("specs/*") == 2

    async def test_without_config_raises(self, engine: Engine) -> None:
        with pytest.raises(ConfigError):
            await engine.test_all()

    async def test_discovery_failure_emits_nothing(
        self, helpers: HelperRecorder
    ) -> None:
        engine = Engine(discover=FakeDiscovery({}, fail="specs/*"), helper_loader=helpers)
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)
        with pytest.raises(DiscoveryError):
            await engine.test_all({"specs": "specs/*"})
        assert recorder.events == []

    async def test_cancellation_leaves_partial_run(
        self, engine: Engine, config: ScanConfig, caplog
    ) -> None:
        gate = asyncio.Event()

        class Blocking:
            async def spec_started(self, node: Composite) -> None:
                await gate.wait()

        engine.builder(TreeStrategy({"/specs/a.tree": ("A",)}))
        engine.reporter(Blocking())
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        with caplog.at_level(logging.WARNING, logger="arbor.engine"):
            task = asyncio.create_task(engine.test_all(config))
            while engine.state is not RunState.TRAVERSING:
                await asyncio.sleep(0)
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert engine.state is RunState.TRAVERSING
        assert recorder.events[0].event is ReportEvent.STARTED
        assert ReportEvent.DONE not in [e.event for e in recorder.events]
        assert "partial run" in caplog.text


class TestSingleFile:
    async def test_runs_only_requested_file(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        strategy = TreeStrategy({p: (Path(p).stem,) for p in SPECS})
        engine.builder(strategy)
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        result = await engine.test("/specs/b.tree", config)

        assert strategy.built == ["/specs/b.tree"]
        assert [c.title for c in result.root.children] == ["b"]
        assert _events(recorder) == [
            ("started", None),
            ("suite_started", "R"),
            ("spec_started", "b"),
            ("spec_done", "b"),
            ("suite_done", "R"),
            ("done", None),
        ]

    async def test_undiscovered_file_raises(
        self, engine: Engine, config: ScanConfig
    ) -> None:
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)
        with pytest.raises(SpecFileNotFoundError) as excinfo:
            await engine.test("/specs/zzz.tree", config)
        assert excinfo.value.file_path == "/specs/zzz.tree"
        assert isinstance(excinfo.value, FileNotFoundError)
        assert recorder.events == []

    async def test_relative_path_is_normalized(self, tmp_path: Path) -> None:
        spec = tmp_path / "one.json"
        spec.write_text('{"title": "one"}')
        engine = Engine()
        engine.builder(JsonBuildStrategy())
        result = await engine.test(
            tmp_path / "." / "one.json", {"specs": "*.json", "root": str(tmp_path)}
        )
        assert [c.title for c in result.root.children] == ["one"]


class TestIndependentEngines:
    async def test_engines_do_not_share_registries(self, discovery: FakeDiscovery) -> None:
        first = Engine(discover=discovery, helper_loader=lambda paths: None)
        second = Engine(discover=discovery, helper_loader=lambda paths: None)
        first.builder(TreeStrategy({p: ("x",) for p in SPECS}))
        first.reporter(RecordingReportStrategy())

        result = await second.test_all({"specs": "specs/*"})

        assert len(first.builders) == 1
        assert len(second.builders) == 0
        assert len(second.reporters) == 0
        assert len(result.build_errors) == 3


class TestEndToEnd:
    async def test_json_specs_on_disk(self, tmp_path: Path) -> None:
        (tmp_path / "specs" / "nested").mkdir(parents=True)
        (tmp_path / "specs" / "login.json").write_text(
            '{"title": "Login", "specs": [{"title": "renders"}, {"title": "submits"}]}'
        )
        (tmp_path / "specs" / "nested" / "cart.json").write_text(
            '{"title": "Cart", "specs": [{"title": "adds item"}]}'
        )
        (tmp_path / "specs" / "notes.txt").write_text("not a spec")
        (tmp_path / "helpers").mkdir()
        marker = tmp_path / "helper-ran"
        (tmp_path / "helpers" / "setup.py").write_text(
            f"from pathlib import Path\nPath({str(marker)!r}).write_text('yes')\n"
        )

        engine = Engine(root_title="Suite")
        engine.builder(JsonBuildStrategy())
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)

        result = await engine.test_all(
            ScanConfig(specs="specs/**/*", helpers="helpers/*.py", root=tmp_path)
        )

        assert marker.read_text() == "yes"
        assert sorted(c.title for c in result.root.children) == ["Cart", "Login"]
        assert len(result.build_errors) == 1
        assert result.build_errors[0].file_path.endswith("notes.txt")
        assert result.spec_count == 3
        assert result.suite_count == 2
        assert recorder.events[0].event is ReportEvent.STARTED
        assert recorder.events[-1].event is ReportEvent.DONE
