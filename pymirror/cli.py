"""CLI interface for pymirror."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .cancellation import CancellationToken
from .cli_progress import UpdateProgressDisplay
from .exceptions import MirrorCancelledError, MirrorError
from .sources import Credentials, UpdateSource, create_source
from .sync.items import UpdateItem, UpdateTask
from .sync.manager import SourceResult, collect_updates, pick_tasks, run_update_items
from .utils import format_size

logger = logging.getLogger(__name__)


def _install_cancel_handler(cancel_token: CancellationToken) -> None:
    """Turn Ctrl-C into a cooperative cancellation where the loop supports it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_token.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; KeyboardInterrupt still works
        pass


def _remove_cancel_handler() -> None:
    """Give Ctrl-C back its default meaning, e.g. while a prompt is blocking."""
    loop = asyncio.get_running_loop()
    try:
        loop.remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass


def _build_sources(ctx: Any, uris: tuple[str, ...]) -> list[UpdateSource]:
    credentials: Optional[Credentials] = ctx.obj["credentials"]
    client_root: Optional[Path] = ctx.obj["client_root"]
    try:
        return [create_source(uri, credentials, client_root=client_root) for uri in uris]
    except MirrorError as e:
        raise click.ClickException(str(e)) from e


async def _collect(
    sources: list[UpdateSource], cancel_token: CancellationToken
) -> list[SourceResult]:
    _install_cancel_handler(cancel_token)
    return await collect_updates(sources, cancel_token)


def _error_label(error: BaseException) -> str:
    kind = getattr(error, "kind", None)
    return f" ({kind.value})" if kind is not None else ""


def _report_failures(console: Console, results: list[SourceResult]) -> None:
    for result in results:
        if result.error is not None:
            console.print(
                f"[red]Error{_error_label(result.error)}:[/red] "
                f"{result.source.uri}: {result.error}"
            )
        for rule, error in result.rule_errors:
            console.print(
                f"[red]Error{_error_label(error)}:[/red] "
                f"{result.source.uri} ({rule.server_path}): {error}"
            )


def _tasks_table(tasks: list[UpdateTask]) -> Table:
    table = Table(title="Pending updates")
    table.add_column("Name")
    table.add_column("Local path")
    table.add_column("Downloads", justify="right")
    table.add_column("Deletions", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Latest remote change")

    for task in tasks:
        table.add_row(
            task.name,
            str(task.rule.client_path),
            str(len(task.downloads)),
            str(len(task.deletions)),
            format_size(task.total_size),
            task.modified.strftime("%Y-%m-%d %H:%M") if task.modified else "-",
        )
    return table


async def _close_all(sources: list[UpdateSource]) -> None:
    await asyncio.gather(*(source.close() for source in sources))


@click.group()
@click.option("--username", "-u", envvar="PYMIRROR_USERNAME", help="Login name for the sources")
@click.option("--password", "-p", envvar="PYMIRROR_PASSWORD", help="Password for the sources")
@click.option(
    "--client-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Base directory for relative client paths in manifests",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="pymirror")
@click.pass_context
def main(
    ctx: Any,
    username: Optional[str],
    password: Optional[str],
    client_root: Optional[Path],
    verbose: bool,
) -> None:
    """pymirror - mirror remote update sources into local directories."""
    ctx.ensure_object(dict)
    ctx.obj["credentials"] = (
        Credentials(username, password or "") if username else Credentials.from_config()
    )
    ctx.obj["client_root"] = client_root.resolve() if client_root else None
    ctx.obj["console"] = Console()

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymirror").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("uris", nargs=-1, required=True)
@click.pass_context
def check(ctx: Any, uris: tuple[str, ...]) -> None:
    """List the updates available from one or more sources."""
    console: Console = ctx.obj["console"]
    sources = _build_sources(ctx, uris)
    cancel_token = CancellationToken()

    async def run() -> list[SourceResult]:
        try:
            return await _collect(sources, cancel_token)
        finally:
            await _close_all(sources)

    try:
        results = asyncio.run(run())
    except MirrorCancelledError:
        console.print("[yellow]Cancelled[/yellow]")
        ctx.exit(130)

    _report_failures(console, results)
    tasks = [task for task in pick_tasks(results) if not task.is_empty]
    if tasks:
        console.print(_tasks_table(tasks))
    else:
        console.print("[green]Everything is up to date[/green]")

    if not all(result.ok for result in results):
        ctx.exit(1)


@main.command()
@click.argument("uris", nargs=-1, required=True)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def update(ctx: Any, uris: tuple[str, ...], yes: bool) -> None:
    """Download and delete files so local directories match the sources."""
    console: Console = ctx.obj["console"]
    sources = _build_sources(ctx, uris)
    cancel_token = CancellationToken()

    async def run() -> int:
        try:
            results = await _collect(sources, cancel_token)
            _report_failures(console, results)
            tasks = [task for task in pick_tasks(results) if not task.is_empty]
            if not tasks:
                console.print("[green]Everything is up to date[/green]")
                return 0 if all(r.ok for r in results) else 1

            console.print(_tasks_table(tasks))
            items: list[UpdateItem] = [item for task in tasks for item in task.items]
            total = sum(item.size for item in items)
            if not yes:
                _remove_cancel_handler()
                if not click.confirm(
                    f"Apply {len(items)} change(s) ({format_size(total)})?", default=True
                ):
                    return 0
                _install_cancel_handler(cancel_token)

            with UpdateProgressDisplay(total, len(items)) as display:
                stats = await run_update_items(
                    items,
                    progress_callback=display.handle_progress,
                    cancel_token=cancel_token,
                    item_callback=display.item_started,
                )

            console.print(
                f"Updated {stats.completed} item(s), {format_size(stats.bytes_total)}"
                + (f", [red]{stats.failed} failed[/red]" if stats.failed else "")
            )
            for item, error in stats.errors:
                console.print(f"[red]  {item.target_path}: {error}[/red]")
            return 1 if stats.failed or not all(r.ok for r in results) else 0
        finally:
            await _close_all(sources)

    try:
        exit_code = asyncio.run(run())
    except MirrorCancelledError:
        console.print("[yellow]Cancelled - partially downloaded files were removed[/yellow]")
        ctx.exit(130)

    if exit_code:
        ctx.exit(exit_code)


if __name__ == "__main__":
    main()
