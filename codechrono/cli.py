# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono — Command line.

Commands:
    codechrono run WORKSPACE...    Track activity in the foreground
    codechrono sync                Run one sync cycle and exit
    codechrono status              Show rows waiting to be synced
    codechrono roots WORKSPACE...  List discovered git repositories
    codechrono set-token           Save the API token
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codechrono import __version__, config
from codechrono.agent import build_agent
from codechrono.exceptions import StoreInitError
from codechrono.git.discovery import find_git_roots
from codechrono.git.runner import GitRunner
from codechrono.host import TokenStore
from codechrono.models import SyncResult
from codechrono.status import StatusLine
from codechrono.store import LocalStore

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


# ─── Click Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="codechrono")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, help="Local store path (default: CODECHRONO_DB)")
@click.option("--api-url", default=None, help="Telemetry endpoint (default: CODECHRONO_API_URL)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None, api_url: str | None) -> None:
    """CodeChrono — coding activity tracker."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["db"] = db or config.DB_PATH
    ctx.obj["api_url"] = api_url or config.API_URL

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ─── Commands ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("workspace", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option(
    "--interval",
    type=float,
    default=None,
    help=f"Seconds between sync cycles (default: {config.SYNC_INTERVAL})",
)
@click.pass_context
def run(ctx: click.Context, workspace: tuple[str, ...], interval: float | None) -> None:
    """Track activity in WORKSPACE folders until interrupted."""
    try:
        asyncio.run(_run(ctx.obj, list(workspace), interval))
    except StoreInitError as e:
        console.print(f"[red]❌ Failed to initialize CodeChrono: {e}[/]")
        sys.exit(1)


async def _run(
    opts: dict,
    folders: list[str],
    interval: float | None,
    stop_event: asyncio.Event | None = None,
) -> None:
    agent = build_agent(
        folders,
        db_path=opts["db"],
        endpoint=opts["api_url"],
        status=StatusLine(console),
        interval=interval,
    )
    try:
        await agent.init()
    except StoreInitError:
        await agent.close()
        raise

    done = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, done.set)
        except (NotImplementedError, RuntimeError):
            # Not on the main thread, or no signal support on this platform.
            pass

    agent.start()
    roots = agent.correlator.roots
    console.print(
        Panel(
            f"[bold]Tracking {len(folders)} folder(s), {len(roots)} git repositories[/]\n"
            f"[dim]Syncing to {agent.remote.endpoint}[/]",
            border_style="cyan",
        )
    )
    try:
        await done.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
        agent.stop()
        await agent.close()
    console.print("[dim]Stopped.[/]")


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run one sync cycle against the local store and exit."""
    try:
        result = asyncio.run(_sync_once(ctx.obj))
    except StoreInitError as e:
        console.print(f"[red]❌ Failed to initialize CodeChrono: {e}[/]")
        sys.exit(1)

    table = Table(title="CodeChrono — Sync", show_header=True, header_style="bold")
    table.add_column("Phase", style="cyan")
    table.add_column("Uploaded", justify="right")
    table.add_row("Daily stats", str(result.daily_synced))
    table.add_row("File activities", str(result.files_synced))
    table.add_row("Commits", str(result.commits_synced))
    console.print(table)

    for err in result.errors:
        console.print(f"  [red]❌ {err}[/]")
    if result.had_failures:
        console.print(Panel("[bold red]⚠️  Sync incomplete; data kept for retry[/]", border_style="red"))
        sys.exit(1)
    console.print(Panel("[bold green]✅ Sync complete[/]", border_style="green"))


async def _sync_once(opts: dict) -> SyncResult:
    agent = build_agent([], db_path=opts["db"], endpoint=opts["api_url"], watch=False)
    try:
        await agent.init()
        return await agent.sync_engine.run_cycle()
    finally:
        await agent.close()


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show rows waiting in the local store."""
    try:
        counts = asyncio.run(_pending(ctx.obj))
    except StoreInitError as e:
        console.print(f"[red]❌ Failed to open local store: {e}[/]")
        sys.exit(1)

    token = TokenStore().get()
    table = Table(title="CodeChrono — Status", show_header=True, header_style="bold")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Store", str(ctx.obj["db"]))
    table.add_row("Endpoint", ctx.obj["api_url"])
    table.add_row("API token", "✅ Set" if token else "❌ Missing")
    table.add_row("Raw activities", str(counts["activities"]))
    table.add_row("Unsynced file activities", str(counts["pending_file_activities"]))
    table.add_row("Unsynced commits", str(counts["commits"]))
    console.print(table)


async def _pending(opts: dict) -> dict[str, int]:
    store = LocalStore(opts["db"])
    await store.init()
    try:
        return await store.pending_counts()
    finally:
        await store.close()


@cli.command()
@click.argument("workspace", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
def roots(workspace: tuple[str, ...]) -> None:
    """List git repositories found under WORKSPACE folders."""
    found = find_git_roots(workspace)
    if not found:
        console.print("[yellow]No git repositories found.[/]")
        return

    heads = asyncio.run(_heads(found))
    table = Table(title="CodeChrono — Repositories", show_header=True, header_style="bold")
    table.add_column("Root", style="cyan")
    table.add_column("Commit")
    table.add_column("Branch")
    for root in found:
        commit, branch = heads[root]
        table.add_row(root, commit[:12] if commit else "[dim]-[/]", branch or "[dim]detached[/]")
    console.print(table)


async def _heads(found: list[str]) -> dict[str, tuple[str | None, str | None]]:
    runner = GitRunner()
    heads = {}
    for root in found:
        heads[root] = (await runner.current_commit(root), await runner.current_branch(root))
    return heads


@cli.command("set-token")
@click.option("--token", default=None, help="Token value (prompted when omitted)")
def set_token(token: str | None) -> None:
    """Save the API token used for uploads."""
    if not token:
        token = click.prompt("Enter your CodeChrono API token", hide_input=True)
    token = token.strip()
    if not token:
        console.print("[red]❌ Empty token[/]")
        sys.exit(1)
    store = TokenStore()
    store.store(token)
    console.print(f"[green]✅ API token saved:[/] {store.path}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
