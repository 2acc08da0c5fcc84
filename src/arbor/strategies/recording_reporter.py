"""In-memory report strategy that records every event it sees."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from arbor.core.composite import Composite
from arbor.core.reporter import ReportEvent


@dataclass(frozen=True)
class RecordedEvent:
    """One observed lifecycle event.

    Attributes:
        event: The event name.
        title: Title of the visited node, ``None`` for run-level events.
        depth: Path length of the visited node (root = 1), 0 for run-level events.
        reporter: Label of the recording reporter.
    """

    event: ReportEvent
    title: str | None = None
    depth: int = 0
    reporter: str = ""

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["event"] = self.event.value
        return data


class RecordingReportStrategy:
    """Appends a :class:`RecordedEvent` to :attr:`events` for every hook.

    Several recorders may share one list to observe cross-reporter ordering.
    """

    def __init__(self, events: list[RecordedEvent] | None = None, label: str = "") -> None:
        self.events: list[RecordedEvent] = events if events is not None else []
        self.label = label

    def _record(self, event: ReportEvent, node: Composite | None = None) -> None:
        if node is None:
            self.events.append(RecordedEvent(event, reporter=self.label))
        else:
            self.events.append(
                RecordedEvent(event, node.title, node.depth, reporter=self.label)
            )

    def started(self) -> None:
        self._record(ReportEvent.STARTED)

    def suite_started(self, node: Composite) -> None:
        self._record(ReportEvent.SUITE_STARTED, node)

    def spec_started(self, node: Composite) -> None:
        self._record(ReportEvent.SPEC_STARTED, node)

    def spec_done(self, node: Composite) -> None:
        self._record(ReportEvent.SPEC_DONE, node)

    def suite_done(self, node: Composite) -> None:
        self._record(ReportEvent.SUITE_DONE, node)

    def done(self) -> None:
        self._record(ReportEvent.DONE)
