"""Pluggable build strategies.

A build strategy recognizes one spec-file format and parses a file of
that format into a :class:`~arbor.core.composite.Composite` subtree.
The :class:`BuilderRegistry` keeps strategies in registration order and
resolves each file through the first one that claims it.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Protocol, runtime_checkable

from arbor.core.composite import Composite
from arbor.core.errors import NoBuilderFoundError, TypeMismatchError

logger = logging.getLogger(__name__)


@runtime_checkable
class BuildStrategy(Protocol):
    """Protocol that all build strategies must satisfy.

    ``build`` may return the subtree directly or an awaitable resolving
    to it.  It must not mutate the filesystem.
    """

    def matches(self, file_path: str) -> bool: ...

    def build(self, file_path: str) -> Composite | Awaitable[Composite]: ...


class Builder:
    """Wrapper that gives any build strategy a uniform interface.

    Strategies may spell the predicate ``matches`` or ``test``.
    """

    def __init__(self, strategy: Any) -> None:
        predicate = getattr(strategy, "matches", None) or getattr(strategy, "test", None)
        if not callable(predicate) or not callable(getattr(strategy, "build", None)):
            raise TypeMismatchError(
                f"{type(strategy).__name__} is not a build strategy: "
                "it needs matches(path) (or test(path)) and build(path)"
            )
        self._strategy = strategy
        self._predicate = predicate

    @property
    def strategy(self) -> Any:
        """Return the wrapped strategy."""
        return self._strategy

    def matches(self, file_path: str) -> bool:
        """Return ``True`` if the strategy claims *file_path*."""
        return bool(self._predicate(file_path))

    async def build(self, file_path: str) -> Composite:
        """Parse *file_path* into a subtree.

        Raises:
            TypeMismatchError: If the strategy returns something other
                than a :class:`Composite`.
        """
        result = self._strategy.build(file_path)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, Composite):
            raise TypeMismatchError(
                f"{type(self._strategy).__name__}.build() returned "
                f"{type(result).__name__}, expected Composite"
            )
        return result


class BuilderRegistry:
    """Ordered list of builders; the first matching builder wins."""

    def __init__(self) -> None:
        self._builders: list[Builder] = []

    @property
    def builders(self) -> list[Builder]:
        """Return the registered builders in registration order."""
        return list(self._builders)

    def register(self, strategy: Any) -> Builder:
        """Wrap *strategy* and append it to the registry.

        Returns:
            The :class:`Builder` wrapping *strategy*.
        """
        builder = strategy if isinstance(strategy, Builder) else Builder(strategy)
        self._builders.append(builder)
        return builder

    def find(self, file_path: str) -> Builder | None:
        """Return the first builder that matches *file_path*, or ``None``."""
        for builder in self._builders:
            if builder.matches(file_path):
                return builder
        return None

    async def resolve(self, file_path: str) -> Composite:
        """Build *file_path* with the first matching builder.

        Results are never cached; each call parses the file again.

        Raises:
            NoBuilderFoundError: If no registered builder matches.
        """
        builder = self.find(file_path)
        if builder is None:
            raise NoBuilderFoundError(file_path)
        logger.debug(
            "Building %s with %s", file_path, type(builder.strategy).__name__
        )
        return await builder.build(file_path)

    def __len__(self) -> int:
        return len(self._builders)
