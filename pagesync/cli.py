"""pagesync CLI — the main entry point."""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pagesync import __version__
from pagesync.config import ConfigError, load_config

console = Console()

ACTION_STYLES = {
    "deployed": "green",
    "removed": "yellow",
    "kept": "dim",
    "skipped": "dim",
    "failed": "red",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(ctx: click.Context):
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(2)


def _print_report(report) -> None:
    table = Table(title=report.summary())
    table.add_column("Repository", style="cyan")
    table.add_column("Action")
    table.add_column("Detail", style="dim")

    for entry in report.entries:
        style = ACTION_STYLES.get(entry.action.value, "")
        table.add_row(str(entry.repo), f"[{style}]{entry.action.value}[/]", entry.detail)

    console.print(table)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """pagesync — deploy the pages branch of many git repositories.

    Settings come from the config file and PAGESYNC_* environment
    variables (REPOSITORIES, TARGET, TOKEN, LISTEN_ADDR, BRANCH, INTERVAL).
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    _setup_logging(verbose)


# ── Serve ────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def serve(ctx: click.Context):
    """Run the webhook receiver and the periodic full sync."""
    import uvicorn

    from pagesync.sync.engine import SyncEngine
    from pagesync.sync.scheduler import PeriodicSync
    from pagesync.web.main import create_app

    config = _load(ctx)
    engine = SyncEngine(config)
    try:
        app = create_app(config, engine)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(2)

    periodic = PeriodicSync(engine)
    periodic.start()
    logging.getLogger(__name__).info("Listening on %s", config.listen_addr)
    try:
        uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    finally:
        periodic.stop()


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def sync(ctx: click.Context):
    """Run one full sync over all repositories."""
    from pagesync.sync.engine import SyncEngine
    from pagesync.utils.dir_scanner import EnumerationError

    engine = SyncEngine(_load(ctx))
    try:
        report = engine.full_sync()
    except EnumerationError as e:
        console.print(f"[red]Full sync aborted:[/] {e}")
        sys.exit(1)

    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command("sync-repo")
@click.argument("name")
@click.pass_context
def sync_repo(ctx: click.Context, name: str):
    """Sync a single repository, given as OWNER/NAME."""
    from pagesync.models.repository import RepoId
    from pagesync.sync.engine import SyncEngine

    try:
        repo = RepoId.parse(name)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="NAME")

    report = SyncEngine(_load(ctx)).sync_repo(repo)
    _print_report(report)
    if not report.ok:
        sys.exit(1)


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Show source repositories and deployments side by side."""
    from pagesync.sync.engine import SyncEngine
    from pagesync.utils.dir_scanner import EnumerationError

    config = _load(ctx)
    try:
        statuses = SyncEngine(config).status()
    except EnumerationError as e:
        console.print(f"[red]Could not scan:[/] {e}")
        sys.exit(1)

    if not statuses:
        console.print("[yellow]No repositories or deployments found.[/]")
        return

    table = Table(title=f"Repositories ({len(statuses)} found)")
    table.add_column("Repository", style="cyan")
    table.add_column("Source")
    table.add_column(f"{config.branch} branch")
    table.add_column("Deployed")
    table.add_column("In sync")

    for s in statuses:
        table.add_row(
            str(s.repo),
            "yes" if s.has_source else "[dim]no[/]",
            s.branch_state,
            "yes" if s.deployed else "[dim]no[/]",
            "[green]yes[/]" if s.in_sync else "[red]no[/]",
        )

    console.print(table)


if __name__ == "__main__":
    main()
