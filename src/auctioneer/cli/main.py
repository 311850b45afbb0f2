"""Auctioneer CLI - task to agent allocation."""

import asyncio
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from auctioneer import __version__
from auctioneer.cli.dependency_commands import deps_app
from auctioneer.cli.task_commands import category_app, task_app
from auctioneer.infrastructure.exceptions import AuctioneerError

app = typer.Typer(
    name="auctioneer",
    help="Task-agent allocation engine - score backlog tasks and assign them to agents",
    no_args_is_help=True,
)

console = Console()

app.add_typer(task_app, name="task")
app.add_typer(category_app, name="category")
app.add_typer(deps_app, name="deps")


# ===== Version =====
@app.command()
def version() -> None:
    """Show Auctioneer version."""
    console.print(f"[bold]Auctioneer[/bold] version [cyan]{__version__}[/cyan]")


# ===== Helper Functions =====
async def _get_services() -> dict[str, Any]:
    """Open the database and build services from project configuration."""
    from auctioneer.infrastructure import AgentStateResolver, ConfigManager, Database
    from auctioneer.infrastructure.logger import setup_logging
    from auctioneer.services import AuctionService, DependencyGraph, ScoringEngine

    config_manager = ConfigManager()
    config = config_manager.load_config()
    setup_logging(log_level=config.log_level, log_dir=config_manager.get_log_dir())

    database = Database(config_manager.get_database_path())
    await database.initialize()

    provider = AgentStateResolver(config.agents)

    return {
        "config": config,
        "database": database,
        "agent_provider": provider,
        "auction_service": AuctionService(database, provider, ScoringEngine(config.auction)),
        "dependency_graph": DependencyGraph(database),
    }


def _status_style(status: str) -> str:
    return {"active": "green", "idle": "yellow", "never": "dim"}.get(status, "white")


# ===== Project Commands =====
@app.command()
def init(
    db_path: Path | None = typer.Option(  # noqa: B008
        None, help="Custom database path (default: .auctioneer/auctioneer.db)"
    ),
    skip_config: bool = typer.Option(False, help="Do not write .auctioneer/config.yaml"),  # noqa: B008
) -> None:
    """Create the project directory, a sample config and the database schema.

    An existing config.yaml is never overwritten.
    """
    from auctioneer.infrastructure import ConfigManager, Database

    config_manager = ConfigManager()
    if not skip_config:
        written = config_manager.write_default_config()
        if written:
            console.print(f"[green]✓[/green] Sample config written to [cyan]{written}[/cyan]")
        else:
            console.print("[dim]Keeping existing .auctioneer/config.yaml[/dim]")

    async def _init() -> Path:
        path = db_path or config_manager.get_database_path()
        database = Database(path)
        await database.initialize()
        await database.close()
        return path

    path = asyncio.run(_init())
    console.print(f"[green]✓[/green] Database initialized at [cyan]{path}[/cyan]")


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Bind address (default: from config)"),
    port: int | None = typer.Option(None, help="Port (default: from config)"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from auctioneer.api import create_app
    from auctioneer.infrastructure import ConfigManager
    from auctioneer.infrastructure.logger import setup_logging

    config_manager = ConfigManager()
    config = config_manager.load_config()
    setup_logging(log_level=config.log_level, log_dir=config_manager.get_log_dir())

    api = create_app(config=config, database_path=config_manager.get_database_path())
    console.print(
        f"[blue]Serving on http://{host or config.server.host}:{port or config.server.port}[/blue]"
    )
    uvicorn.run(
        api,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


# ===== Agent and Auction Commands =====
@app.command()
def agents() -> None:
    """List agents discovered from configured instances."""

    async def _agents() -> None:
        services = await _get_services()
        roster = await services["auction_service"].list_agents()

        table = Table(title="Agents")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Model")
        table.add_column("Status")
        table.add_column("Sessions", justify="right")
        table.add_column("Active", justify="right")

        for agent in roster:
            style = _status_style(agent.status.value)
            table.add_row(
                agent.id,
                agent.name,
                agent.model,
                f"[{style}]{agent.status.value}[/{style}]",
                str(agent.total_sessions),
                str(agent.active_sessions),
            )

        console.print(table)
        await services["database"].close()

    asyncio.run(_agents())


@app.command()
def auction(
    limit: int = typer.Option(20, help="Maximum tasks to show"),
    bids: int = typer.Option(3, help="Bids shown per task"),
) -> None:
    """Rank backlog tasks and show the top bids for each."""

    async def _auction() -> None:
        services = await _get_services()
        try:
            result = await services["auction_service"].run_auction(limit)
        except AuctioneerError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e
        finally:
            await services["database"].close()

        if not result.tasks:
            console.print("[dim]Backlog is empty[/dim]")
            return

        table = Table(title="Auction")
        table.add_column("Score", justify="right", style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Priority")
        table.add_column("Suggested", style="green")
        table.add_column("Top bids")

        for task in result.tasks:
            top = ", ".join(
                f"{b.agent_id}={b.score}{'' if b.available else '*'}"
                for b in task.agent_bids[:bids]
            )
            table.add_row(
                f"{task.score:.2f}",
                task.id[:8],
                task.title,
                task.priority.value,
                task.suggested_agent or "-",
                top,
            )

        console.print(table)
        console.print("[dim]* agent at its availability cap[/dim]")

    asyncio.run(_auction())


@app.command()
def assign(
    task_id: str = typer.Argument(..., help="Task ID or prefix"),
    agent_id: str = typer.Argument(..., help="Agent ID"),
) -> None:
    """Assign a task to an agent and move it to in-progress."""
    from auctioneer.cli.task_commands import _resolve_task_id

    async def _assign() -> None:
        services = await _get_services()
        try:
            resolved = await _resolve_task_id(task_id, services)
            task = await services["auction_service"].assign(resolved, agent_id)
        except AuctioneerError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e
        finally:
            await services["database"].close()

        console.print(
            f"[green]✓[/green] Task [cyan]{task.id[:8]}[/cyan] assigned to "
            f"[bold]{agent_id}[/bold] ({task.status.value})"
        )

    asyncio.run(_assign())


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
