"""Pluggable report strategies and fan-out event dispatch.

A report strategy observes the lifecycle of a run through up to six
optional hooks named after :class:`ReportEvent` values.  A missing hook
means the strategy does not care about that event.  Hooks may be plain
functions or coroutines.

:meth:`ReporterRegistry.emit` invokes the hook on every registered
reporter in registration order, awaiting each before moving on, so every
reporter sees the same event order and reporter N always finishes an
event before reporter N+1 starts it.
"""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from arbor.core.composite import Composite

logger = logging.getLogger(__name__)


class ReportEvent(str, enum.Enum):
    """Lifecycle events; each value is the name of the matching hook."""

    STARTED = "started"
    SUITE_STARTED = "suite_started"
    SPEC_STARTED = "spec_started"
    SPEC_DONE = "spec_done"
    SUITE_DONE = "suite_done"
    DONE = "done"

    @property
    def takes_node(self) -> bool:
        """Return ``True`` if the hook receives the visited node."""
        return self not in (ReportEvent.STARTED, ReportEvent.DONE)


@runtime_checkable
class ReportStrategy(Protocol):
    """Full hook set.  Real strategies implement any subset of it."""

    def started(self) -> Any: ...

    def suite_started(self, node: Composite) -> Any: ...

    def spec_started(self, node: Composite) -> Any: ...

    def spec_done(self, node: Composite) -> Any: ...

    def suite_done(self, node: Composite) -> Any: ...

    def done(self) -> Any: ...


@dataclass
class HookFailure:
    """A reporter hook that raised.

    Attributes:
        reporter: The reporter whose hook failed.
        event: The event being dispatched.
        error: The exception raised by the hook.
        title: Title of the node being visited, if any.
    """

    reporter: Reporter
    event: ReportEvent
    error: Exception
    title: str | None = None


class Reporter:
    """Wrapper exposing the optional hooks of a report strategy."""

    def __init__(self, strategy: Any) -> None:
        self._strategy = strategy

    @property
    def strategy(self) -> Any:
        """Return the wrapped strategy."""
        return self._strategy

    @property
    def name(self) -> str:
        """Return the strategy class name, used in log messages."""
        return type(self._strategy).__name__

    def supports(self, event: ReportEvent) -> bool:
        """Return ``True`` if the strategy implements the hook for *event*."""
        return callable(getattr(self._strategy, event.value, None))

    async def invoke(self, event: ReportEvent, node: Composite | None = None) -> None:
        """Call the hook for *event*, awaiting it if it is asynchronous.

        Unsupported events are skipped silently.
        """
        hook = getattr(self._strategy, event.value, None)
        if not callable(hook):
            return
        result = hook(node) if event.takes_node else hook()
        if inspect.isawaitable(result):
            await result


class ReporterRegistry:
    """Ordered list of reporters with sequential fan-out dispatch."""

    def __init__(self) -> None:
        self._reporters: list[Reporter] = []

    @property
    def reporters(self) -> list[Reporter]:
        """Return the registered reporters in registration order."""
        return list(self._reporters)

    def register(self, strategy: Any) -> Reporter:
        """Wrap *strategy* and append it to the registry.

        Returns:
            The :class:`Reporter` wrapping *strategy*.
        """
        reporter = strategy if isinstance(strategy, Reporter) else Reporter(strategy)
        self._reporters.append(reporter)
        return reporter

    async def emit(
        self, event: ReportEvent, node: Composite | None = None
    ) -> list[HookFailure]:
        """Dispatch *event* to every reporter in registration order.

        Exceptions raised by a hook are logged and collected; they never
        stop the remaining reporters from receiving the event.

        Args:
            event: The lifecycle event.
            node: The visited node for suite/spec events.

        Returns:
            The hook failures that occurred, in dispatch order.
        """
        failures: list[HookFailure] = []
        title = node.title if node is not None else None
        for reporter in self._reporters:
            try:
                await reporter.invoke(event, node)
            except Exception as exc:
                logger.error(
                    "Reporter %s failed on %s%s: %s",
                    reporter.name,
                    event.value,
                    f" ({title})" if title is not None else "",
                    exc,
                )
                failures.append(
                    HookFailure(reporter=reporter, event=event, error=exc, title=title)
                )
        return failures

    def __len__(self) -> int:
        return len(self._reporters)
