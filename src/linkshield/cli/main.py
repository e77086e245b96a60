"""Main CLI application using Click framework."""

import asyncio
import concurrent.futures
import functools
import sys
from typing import Any, Optional

import click
import uvicorn
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from ..config import ConfigLoader, get_settings
from ..scanner.bookmarks import JsonBookmarkSource
from ..scanner.cache import LINK_NAMESPACE, SAFETY_NAMESPACE
from ..scanner.engine import ScanEngine
from ..scanner.events import (
    BLOCKLIST_PROGRESS,
    SCAN_BATCH_COMPLETE,
    SCAN_PROGRESS,
    SCAN_STATUS,
    EngineEvent,
)
from ..scanner.types import LinkStatus, SafetyStatus, ScannerError, ValidationRejection
from ..storage.memory import MemoryKeyValueStore
from ..utils.logging import get_structured_logger, setup_logging
from .types import CLIContext, CommandResult, OutputFormat

console = Console()
logger = get_structured_logger(__name__)

LINK_STYLES = {
    LinkStatus.LIVE.value: "green",
    LinkStatus.DEAD.value: "red",
    LinkStatus.PARKED.value: "yellow",
}

SAFETY_STYLES = {
    SafetyStatus.SAFE.value: "green",
    SafetyStatus.WARNING.value: "yellow",
    SafetyStatus.UNSAFE.value: "bold red",
    SafetyStatus.UNKNOWN.value: "dim",
}

CACHE_KINDS = {"link": LINK_NAMESPACE, "safety": SAFETY_NAMESPACE}


def async_command(f):
    """Decorator to run async functions in Click commands."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return asyncio.run(f(*args, **kwargs))

            # Already inside a loop, run in a new thread with its own event loop
            with concurrent.futures.ThreadPoolExecutor() as executor:
                future = executor.submit(lambda: asyncio.run(f(*args, **kwargs)))
                return future.result()
        except KeyboardInterrupt:
            console.print("❌ Operation cancelled by user", style="red")
            sys.exit(1)
        except Exception as e:
            console.print(f"❌ Error: {str(e)}", style="red")
            logger.error("CLI command failed", error=str(e))
            sys.exit(1)

    return wrapper


def handle_result(result: CommandResult, ctx: CLIContext) -> None:
    """Handle command result output."""
    if result.success:
        if result.message:
            console.print(f"✅ {result.message}", style="green")
        if result.data and ctx.verbose:
            console.print_json(data=result.data)
    else:
        console.print(f"❌ {result.message}", style="red")
        if result.data and ctx.debug:
            console.print_json(data=result.data)

    if not result.success:
        sys.exit(result.exit_code)


def build_engine(ctx: CLIContext) -> ScanEngine:
    """Engine for one CLI invocation, honouring ``--config`` and ``--ephemeral``."""
    settings = get_settings()
    loader = ConfigLoader(ctx.config_path or settings.config_file)
    store = MemoryKeyValueStore() if ctx.ephemeral else None
    return ScanEngine(settings, store=store, config_loader=loader)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option(
    "--ephemeral", is_flag=True, help="Keep caches in memory for this run only"
)
@click.pass_context
def cli(
    ctx, verbose: bool, debug: bool, config: Optional[str], ephemeral: bool
) -> None:
    """LinkShield - bookmark link health and URL safety scanner."""
    ctx.obj = CLIContext(
        verbose=verbose, debug=debug, config_path=config, ephemeral=ephemeral
    )

    settings = get_settings()
    setup_logging(
        log_level="DEBUG" if debug else settings.log_level,
        json_logs=settings.json_logs,
    )

    if ctx.obj.verbose:
        console.print("🛡️  LinkShield CLI", style="bold blue")


@cli.command("check-link")
@click.argument("url")
@click.option("--rescan", is_flag=True, help="Ignore cached results")
@click.pass_obj
@async_command
async def check_link(ctx: CLIContext, url: str, rescan: bool) -> None:
    """Check whether URL is live, dead or parked."""
    async with build_engine(ctx) as engine:
        status = await engine.check_link_status(url, bypass_cache=rescan)

    style = LINK_STYLES.get(status.value, "white")
    console.print(f"{url}: [{style}]{status.value}[/{style}]")

    handle_result(
        CommandResult(success=True, data={"url": url, "status": status.value}), ctx
    )


@cli.command("check-safety")
@click.argument("url")
@click.option("--rescan", is_flag=True, help="Ignore cached results")
@click.option(
    "--skip-blocklist",
    is_flag=True,
    help="Do not download the threat blocklist before checking",
)
@click.pass_obj
@async_command
async def check_safety(
    ctx: CLIContext, url: str, rescan: bool, skip_blocklist: bool
) -> None:
    """Classify URL as safe, warning, unsafe or unknown."""
    async with build_engine(ctx) as engine:
        if not skip_blocklist:
            with console.status("Loading security database..."):
                await engine.ensure_blocklist_ready()
        result = await engine.check_url_safety(url, bypass_cache=rescan)

    style = SAFETY_STYLES.get(result.status.value, "white")
    console.print(f"{url}: [{style}]{result.status.value}[/{style}]")
    for source in result.sources:
        console.print(f"  • {source}")

    handle_result(CommandResult(success=True, data={"url": url, **result.to_dict()}), ctx)


@cli.command()
@click.argument("bookmarks_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--rescan", is_flag=True, help="Ignore cached results")
@click.option("--no-links", is_flag=True, help="Skip link reachability checks")
@click.option("--no-safety", is_flag=True, help="Skip safety checks")
@click.option(
    "--format",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat]),
    default=OutputFormat.TABLE.value,
    help="Output format",
)
@click.pass_obj
@async_command
async def scan(
    ctx: CLIContext,
    bookmarks_file: str,
    rescan: bool,
    no_links: bool,
    no_safety: bool,
    output_format: str,
) -> None:
    """Scan every bookmark in BOOKMARKS_FILE."""
    try:
        bookmarks = await JsonBookmarkSource(bookmarks_file).load()
    except ScannerError as e:
        handle_result(CommandResult(success=False, message=str(e), exit_code=1), ctx)
        return

    results: list[dict[str, Any]] = []
    show_progress = output_format == OutputFormat.TABLE.value

    async with build_engine(ctx) as engine:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            disable=not show_progress,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Scanning bookmarks", total=len(bookmarks))

            def on_event(event: EngineEvent) -> None:
                if event.type == SCAN_BATCH_COMPLETE:
                    results.extend(event.data["results"])
                elif event.type == SCAN_PROGRESS:
                    progress.update(task_id, completed=event.data["scanned"])
                elif event.type == SCAN_STATUS:
                    progress.update(task_id, description=event.data["message"])
                elif event.type == BLOCKLIST_PROGRESS and event.data.get("sourceName"):
                    progress.update(
                        task_id, description=f"Downloading {event.data['sourceName']}"
                    )

            unsubscribe = engine.subscribe(on_event)
            try:
                started = await engine.start_scan(
                    bookmarks,
                    bypass_cache=rescan,
                    link_checking=False if no_links else None,
                    safety_checking=False if no_safety else None,
                )
                if started.success:
                    progress.update(task_id, description="Scanning bookmarks")
                    final = await engine.wait_for_scan()
            finally:
                unsubscribe()

    if not started.success:
        handle_result(
            CommandResult(success=False, message=started.message, exit_code=1), ctx
        )
        return

    summary = {"scanned": final.scanned, "total": final.total}
    if output_format == OutputFormat.JSON.value:
        console.print_json(data={"summary": summary, "results": results})
        return

    titles = {bookmark.id: bookmark.title for bookmark in bookmarks}
    table = Table(title=f"Scan Results ({final.scanned}/{final.total})")
    table.add_column("Bookmark", style="cyan")
    table.add_column("URL")
    table.add_column("Link")
    table.add_column("Safety")
    table.add_column("Sources", style="dim")

    for item in results:
        link = item.get("linkStatus") or "-"
        safety = item.get("safetyStatus") or "-"
        link_style = LINK_STYLES.get(link, "white")
        safety_style = SAFETY_STYLES.get(safety, "white")
        table.add_row(
            titles.get(item["id"], ""),
            item["url"],
            f"[{link_style}]{link}[/{link_style}]",
            f"[{safety_style}]{safety}[/{safety_style}]",
            ", ".join(item.get("safetySources") or []),
        )

    console.print(table)
    handle_result(
        CommandResult(
            success=True,
            message=f"Scanned {final.scanned} of {final.total} bookmarks",
            data=summary,
        ),
        ctx,
    )


# Blocklist Commands
@cli.group()
def blocklist():
    """Threat blocklist commands."""
    pass


@blocklist.command("refresh")
@click.pass_obj
@async_command
async def blocklist_refresh(ctx: CLIContext) -> None:
    """Download every blocklist source and rebuild the index."""
    async with build_engine(ctx) as engine:

        def on_event(event: EngineEvent) -> None:
            if event.type == BLOCKLIST_PROGRESS and event.data.get("sourceName"):
                console.print(
                    f"⬇️  [{event.data['current']}/{event.data['total']}] "
                    f"{event.data['sourceName']}"
                )

        unsubscribe = engine.subscribe(on_event)
        try:
            success = await engine.refresh_blocklist()
        finally:
            unsubscribe()
        status = engine.blocklist_status()

    if success:
        result = CommandResult(
            success=True,
            message=f"Blocklist updated: {status.domains} entries from {status.sources} sources",
            data=status.to_dict(),
        )
    else:
        result = CommandResult(
            success=False, message="Blocklist update failed", exit_code=1
        )
    handle_result(result, ctx)


@blocklist.command("status")
@click.pass_obj
@async_command
async def blocklist_status(ctx: CLIContext) -> None:
    """Show blocklist index status."""
    async with build_engine(ctx) as engine:
        status = engine.blocklist_status()
        sources = engine.blocklist.sources

    table = Table(title="Blocklist Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Entries", str(status.domains))
    table.add_row("Sources", str(status.sources))
    table.add_row(
        "Last Update",
        str(int(status.last_update)) if status.last_update else "never",
    )
    console.print(table)

    if ctx.verbose:
        for source in sources:
            console.print(f"  • {source.name} ({source.format}): {source.url}")


@blocklist.command("lookup")
@click.argument("url")
@click.pass_obj
@async_command
async def blocklist_lookup(ctx: CLIContext, url: str) -> None:
    """Show which blocklist sources list URL."""
    async with build_engine(ctx) as engine:
        await engine.ensure_blocklist_ready()
        try:
            sources = engine.lookup_blocklist(url)
        except ValidationRejection as e:
            handle_result(CommandResult(success=False, message=e.reason, exit_code=2), ctx)
            return

    if sources:
        console.print(f"🚫 {url} is listed by:", style="red")
        for source in sources:
            console.print(f"  • {source}")
    else:
        console.print(f"✅ {url} is not listed", style="green")


# Cache Commands
@cli.group()
def cache():
    """Result cache commands."""
    pass


@cache.command("clear")
@click.option(
    "--kind",
    type=click.Choice(sorted(CACHE_KINDS)),
    help="Only clear link or safety results",
)
@click.pass_obj
@async_command
async def cache_clear(ctx: CLIContext, kind: Optional[str]) -> None:
    """Drop cached link and safety results."""
    async with build_engine(ctx) as engine:
        cleared = await engine.clear_cache(CACHE_KINDS[kind] if kind else None)

    handle_result(
        CommandResult(success=True, message=f"Cleared {cleared} cached results"), ctx
    )


# Whitelist Commands
@cli.group()
def whitelist():
    """User whitelist commands."""
    pass


@whitelist.command("add")
@click.argument("host")
@click.pass_obj
@async_command
async def whitelist_add(ctx: CLIContext, host: str) -> None:
    """Trust HOST completely."""
    async with build_engine(ctx) as engine:
        try:
            added = await engine.add_to_whitelist(host)
        except ValueError as e:
            result = CommandResult(success=False, message=str(e), exit_code=2)
        else:
            result = CommandResult(success=True, message=f"Whitelisted {added}")

    handle_result(result, ctx)


@whitelist.command("remove")
@click.argument("host")
@click.pass_obj
@async_command
async def whitelist_remove(ctx: CLIContext, host: str) -> None:
    """Stop trusting HOST."""
    async with build_engine(ctx) as engine:
        removed = await engine.remove_from_whitelist(host)

    if removed:
        result = CommandResult(success=True, message=f"Removed {host} from whitelist")
    else:
        result = CommandResult(
            success=False, message=f"Host not whitelisted: {host}", exit_code=1
        )
    handle_result(result, ctx)


@whitelist.command("list")
@click.pass_obj
@async_command
async def whitelist_list(ctx: CLIContext) -> None:
    """List whitelisted hosts."""
    async with build_engine(ctx) as engine:
        hosts = await engine.list_whitelist()

    if not hosts:
        console.print("📭 Whitelist is empty")
        return

    table = Table(title="Whitelisted Hosts")
    table.add_column("Host", style="cyan")
    for host in hosts:
        table.add_row(host)
    console.print(table)


@cli.command()
@click.option("--host", help="Bind address (defaults to settings)")
@click.option("--port", type=int, help="Bind port (defaults to settings)")
@click.pass_obj
def serve(ctx: CLIContext, host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP API server."""
    settings = get_settings()
    host = host or settings.api.host
    port = port or settings.api.port

    console.print(f"🚀 Serving LinkShield API on http://{host}:{port}", style="bold blue")
    uvicorn.run(
        "linkshield.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


def create_cli() -> click.Group:
    """Create and return the CLI application."""
    return cli


if __name__ == "__main__":
    cli()
