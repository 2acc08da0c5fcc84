"""Report strategy that POSTs every lifecycle event to an HTTP endpoint.

Each event becomes one JSON body::

    {"title": "...", "action": "started" | "done",
     "type": "tests" | "suite" | "spec", "pathLength": 3}

``pathLength`` is omitted for run-level (``tests``) events.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from arbor.core.composite import Composite

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpReportStrategy:
    """Sends run events to *url* with an ``httpx.AsyncClient``.

    A client passed in by the caller is left open; a client created by
    the strategy is closed after :meth:`done`, by :meth:`aclose`, or on
    leaving an ``async with`` block, so a run cancelled before ``done``
    does not leak it.  Non-2xx responses raise
    ``httpx.HTTPStatusError``, which the engine logs without stopping
    the run.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._url = url
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _send(self, payload: dict[str, Any]) -> None:
        response = await self._get_client().post(self._url, json=payload)
        response.raise_for_status()
        logger.debug("Reported %s %s to %s", payload["action"], payload["type"], self._url)

    @staticmethod
    def _node_payload(node: Composite, action: str) -> dict[str, Any]:
        return {
            "title": node.title,
            "action": action,
            "type": "suite" if node.has_children() else "spec",
            "pathLength": node.depth,
        }

    async def started(self) -> None:
        await self._send({"title": "Testing started", "action": "started", "type": "tests"})

    async def suite_started(self, node: Composite) -> None:
        await self._send(self._node_payload(node, "started"))

    async def spec_started(self, node: Composite) -> None:
        await self._send(self._node_payload(node, "started"))

    async def spec_done(self, node: Composite) -> None:
        await self._send(self._node_payload(node, "done"))

    async def suite_done(self, node: Composite) -> None:
        await self._send(self._node_payload(node, "done"))

    async def done(self) -> None:
        try:
            await self._send({"title": "Testing done", "action": "done", "type": "tests"})
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Close the client if this strategy created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpReportStrategy:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
