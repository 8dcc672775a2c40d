"""CLI entrypoint."""
from __future__ import annotations

import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from .assets import AssetBundle
from .cancellation import CancellationToken
from .config import load_config
from .environment import EnvironmentCapabilities
from .errors import VaultsiteError
from .index import ExportIndex
from .lib.json import dumps
from .lib.log import configure_logging
from .metadata import IconPackSource
from .models import BuildResult
from .rendering.page import MarkdownPageGenerator
from .sources import discover_sources
from .website import Website
from .writer import write_result


def _fail(command: str, message: str) -> None:
    raise SystemExit(f"{command}: {message}")


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn the first Ctrl-C into a cooperative cancellation."""

    def _handler(signum, frame) -> None:
        token.cancel("interrupted")

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_result(result: BuildResult, destination: Path, *, dry_run: bool) -> None:
    if result.cancelled:
        click.echo("Export cancelled; nothing was written.")
        return
    summary = result.summary()
    mode = "incremental" if result.incremental else "full"
    verb = "Would write" if dry_run else "Wrote"
    click.echo(f"{verb} {summary['written']} file(s) ({summary['pages']} page(s), {mode} export) → {destination}")
    if summary["skipped"]:
        click.echo(f"Unchanged: {summary['skipped']}")
    if summary["removed"]:
        click.echo(f"Removed: {summary['removed']}")
    if result.failed:
        click.echo("Failed:")
        for path in result.failed:
            click.echo(f"  {path}")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, json_logs: bool) -> None:
    """Export a vault of markdown notes to a static website."""
    configure_logging(verbose=verbose, json_logs=json_logs, quiet=quiet)
    ctx.ensure_object(dict)


@cli.command()
@click.argument("source", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("destination", type=click.Path(file_okay=False, path_type=Path))
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Path to vaultsite.json")
@click.option("--full", is_flag=True, help="Ignore the previous export and rebuild everything")
@click.option("--dry-run", is_flag=True, help="Compute the write-set without writing")
@click.option("--title", default=None, help="Site title")
@click.option("--graph/--no-graph", "include_graph_view", default=None, help="Include the link graph")
@click.option("--tree/--no-tree", "include_file_tree", default=None, help="Include the file tree")
@click.option("--web-style/--no-web-style", "web_style_names", default=None, help="Lower-case, dash-separated output names")
@click.option(
    "--capabilities",
    "capabilities_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON description of installed editor extensions",
)
@click.option("--json", "json_output", is_flag=True, help="Print the result as JSON")
def build(
    source: Path,
    destination: Path,
    config_file: Optional[Path],
    full: bool,
    dry_run: bool,
    title: Optional[str],
    include_graph_view: Optional[bool],
    include_file_tree: Optional[bool],
    web_style_names: Optional[bool],
    capabilities_file: Optional[Path],
    json_output: bool,
) -> None:
    """Export SOURCE to DESTINATION, rewriting only what changed."""
    try:
        config = load_config(source, config_file)
        config = config.with_overrides(
            title=title,
            include_graph_view=include_graph_view,
            include_file_tree=include_file_tree,
            web_style_names=web_style_names,
        )
        if full:
            config.incremental = False
        capabilities = (
            EnvironmentCapabilities.load(capabilities_file) if capabilities_file else EnvironmentCapabilities()
        )
        files = discover_sources(source, exclude=destination)
    except (VaultsiteError, FileNotFoundError) as exc:
        _fail("build", str(exc))
        return
    if not files:
        _fail("build", f"No files found in {source}")

    icon_source = IconPackSource.from_capabilities(capabilities)
    token = CancellationToken()
    console = Console(stderr=True)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
        disable=json_output or not console.is_terminal,
    ) as progress:
        task_id = progress.add_task("Exporting...", total=len(files))

        def progress_callback(current: int, total: int, label: str) -> None:
            progress.update(task_id, completed=current, total=total, description=label)

        website = Website(
            MarkdownPageGenerator(),
            index=ExportIndex.for_destination(destination, incremental_enabled=config.incremental),
            assets=AssetBundle(files, config, icon_source=icon_source),
            config=config,
            cancellation=token,
            progress=progress_callback,
            capabilities=capabilities,
            icon_source=icon_source,
            writer=None if dry_run else write_result,
            persist_index=not dry_run,
        )
        try:
            with _cancel_on_interrupt(token):
                result = website.build(files, destination)
        except VaultsiteError as exc:
            _fail("build", str(exc))
            return

    if json_output:
        payload = {
            "cmd": "build",
            "destination": str(destination),
            "cancelled": result.cancelled,
            "incremental": result.incremental,
            "dryRun": dry_run,
            "written": [artifact.relative_path for artifact in result.write_set],
            "generated": result.generated,
            "skipped": result.skipped,
            "failed": result.failed,
            "removed": result.removed,
        }
        click.echo(dumps(payload, indent=True))
    else:
        _print_result(result, destination, dry_run=dry_run)
    if result.cancelled:
        sys.exit(130)


@cli.group()
def index() -> None:
    """Inspect the export index of a destination."""


@index.command("show")
@click.argument("destination", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Print the index entries as JSON")
def index_show(destination: Path, json_output: bool) -> None:
    """Show what the last completed export recorded."""
    export_index = ExportIndex.for_destination(destination)
    if not export_index.global_incremental_eligible():
        click.echo(f"No completed export recorded in {destination}")
        return
    if json_output:
        payload = {
            "exportedAt": export_index.exported_at,
            "entries": {path: entry.model_dump() for path, entry in export_index.entries.items()},
            "sources": {path: record.model_dump() for path, record in export_index.sources.items()},
        }
        click.echo(dumps(payload, indent=True))
        return
    click.echo(f"Exported at: {export_index.exported_at}")
    click.echo(f"Artifacts: {len(export_index.entries)}")
    click.echo(f"Sources: {len(export_index.sources)}")


def main() -> None:
    cli()


__all__ = ["cli", "main"]
