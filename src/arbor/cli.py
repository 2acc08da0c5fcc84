"""CLI entry point for the arbor test orchestrator.

Provides ``run`` and ``list`` sub-commands using Click and Rich for
output formatting.  A ``.env`` file in the working directory is loaded
first, so ``ARBOR_SPECS`` and ``ARBOR_HELPERS`` can live there.

Usage::

    arbor run --specs "specs/**/*.json" --helpers "helpers/*.py"
    arbor run specs/login.json --config arbor.json --reporter json
    arbor list --specs "specs/**/*.json"
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from arbor.config import ENV_HELPERS, ENV_SPECS, ScanConfig
from arbor.core.errors import ArborError
from arbor.engine import Engine, RunResult
from arbor.strategies import (
    ConsoleReportStrategy,
    HttpReportStrategy,
    JsonBuildStrategy,
    RecordingReportStrategy,
)

console = Console()
# Logs, errors and problem tables; stdout is reserved for reporter output
err_console = Console(stderr=True)


def _log_handler() -> RichHandler:
    return RichHandler(console=err_console, rich_tracebacks=True)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[_log_handler()],
    )


def _resolve_config(
    config_file: str | None, specs: str | None, helpers: str | None
) -> ScanConfig:
    if config_file:
        base = ScanConfig.from_file(config_file)
        return ScanConfig(
            specs=specs or base.specs,
            helpers=helpers or base.helpers,
            root=base.root,
        )
    if not specs:
        raise click.UsageError(
            f"No spec pattern given: pass --specs, --config or set {ENV_SPECS}"
        )
    return ScanConfig(specs=specs, helpers=helpers)


@click.group()
@click.version_option(package_name="arbor")
def main() -> None:
    """Arbor - pluggable test orchestration."""
    load_dotenv(Path.cwd() / ".env")


@main.command()
@click.argument("spec_file", required=False, type=click.Path())
@click.option("--specs", envvar=ENV_SPECS, default=None, help="Glob pattern for spec files.")
@click.option("--helpers", envvar=ENV_HELPERS, default=None, help="Glob pattern for helper files.")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True),
    default=None,
    help="JSON scan configuration file.",
)
@click.option(
    "--reporter",
    "reporter_name",
    type=click.Choice(["console", "json", "http"]),
    default="console",
    help="How to report the run.",
)
@click.option("--url", default=None, help="Endpoint for the http reporter.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def run(
    spec_file: str | None,
    specs: str | None,
    helpers: str | None,
    config_file: str | None,
    reporter_name: str,
    url: str | None,
    verbose: bool,
) -> None:
    """Run every discovered spec file, or only SPEC_FILE."""
    _setup_logging(verbose)

    try:
        config = _resolve_config(config_file, specs, helpers)
    except ArborError as exc:
        err_console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise SystemExit(1) from exc

    if reporter_name == "http" and not url:
        raise click.UsageError("--url is required with --reporter http")

    engine = Engine()
    engine.builder(JsonBuildStrategy())
    recorder: RecordingReportStrategy | None = None
    http_reporter: HttpReportStrategy | None = None
    if reporter_name == "console":
        engine.reporter(ConsoleReportStrategy(console=console))
    elif reporter_name == "json":
        recorder = RecordingReportStrategy()
        engine.reporter(recorder)
    else:
        http_reporter = HttpReportStrategy(url)
        engine.reporter(http_reporter)

    try:
        result = asyncio.run(_execute(engine, spec_file, config, http_reporter))
    except ArborError as exc:
        err_console.print(f"[red]Run failed:[/red] {exc}")
        raise SystemExit(1) from exc

    if recorder is not None:
        click.echo(json.dumps([e.to_dict() for e in recorder.events], indent=2))

    _print_failures(result)
    if not result.ok:
        raise SystemExit(1)


async def _execute(
    engine: Engine,
    spec_file: str | None,
    config: ScanConfig,
    http_reporter: HttpReportStrategy | None,
) -> RunResult:
    try:
        if spec_file:
            return await engine.test(spec_file, config)
        return await engine.test_all(config)
    finally:
        # done() is skipped when the run aborts early
        if http_reporter is not None:
            await http_reporter.aclose()


@main.command(name="list")
@click.option("--specs", envvar=ENV_SPECS, default=None, help="Glob pattern for spec files.")
@click.option("--helpers", envvar=ENV_HELPERS, default=None, help="Glob pattern for helper files.")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True),
    default=None,
    help="JSON scan configuration file.",
)
def list_files(specs: str | None, helpers: str | None, config_file: str | None) -> None:
    """List the spec and helper files a run would use."""
    try:
        config = _resolve_config(config_file, specs, helpers)
        engine = Engine(helper_loader=lambda paths: None)
        asyncio.run(engine.scan(config))
    except ArborError as exc:
        err_console.print(f"[red]Scan failed:[/red] {exc}")
        raise SystemExit(1) from exc

    if not engine.spec_files and not engine.helper_files:
        console.print("[yellow]No files found.[/yellow]")
        return

    table = Table(title="Discovered Files")
    table.add_column("Kind", style="cyan")
    table.add_column("Path")
    for path in engine.helper_files:
        table.add_row("helper", path)
    for path in engine.spec_files:
        table.add_row("spec", path)
    console.print(table)


def _print_failures(result: RunResult) -> None:
    """Print build and reporter failures in a table."""
    if not result.build_errors and not result.reporter_errors:
        return

    table = Table(title="Problems")
    table.add_column("Kind", style="bold")
    table.add_column("Where")
    table.add_column("Message")

    for failure in result.build_errors:
        table.add_row("[red]build[/red]", failure.file_path, failure.message)
    for hook_failure in result.reporter_errors:
        where = f"{hook_failure.reporter.name}.{hook_failure.event.value}"
        table.add_row("[yellow]reporter[/yellow]", where, str(hook_failure.error))

    err_console.print(table)


if __name__ == "__main__":
    main()
