"""Report strategy that renders the run as an indented tree using ``rich``."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from arbor.core.composite import Composite

INDENT = "  "


class ConsoleReportStrategy:
    """Prints suites in bold and specs with a bullet, indented by depth.

    Counts are reset on :meth:`started` and summarized on :meth:`done`.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self.spec_count = 0
        self.suite_count = 0

    def started(self) -> None:
        self.spec_count = 0
        self.suite_count = 0
        self._console.print("[bold green]Running specs[/bold green]")

    def suite_started(self, node: Composite) -> None:
        self.suite_count += 1
        self._console.print(f"{self._indent(node)}[bold]{escape(node.title)}[/bold]")

    def spec_done(self, node: Composite) -> None:
        self.spec_count += 1
        self._console.print(f"{self._indent(node)}[cyan]•[/cyan] {escape(node.title)}")

    def done(self) -> None:
        self._console.print(
            f"[bold green]Done:[/bold green] {self.spec_count} spec(s) "
            f"in {self.suite_count} suite(s)"
        )

    @staticmethod
    def _indent(node: Composite) -> str:
        return INDENT * (node.depth - 1)
