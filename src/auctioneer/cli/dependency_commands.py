"""Blocked-by dependency commands."""

import asyncio

import typer
from rich.console import Console

from auctioneer.infrastructure.exceptions import AuctioneerError

console = Console()

deps_app = typer.Typer(help="Task dependency management", no_args_is_help=True)


@deps_app.command("show")
def deps_show(task_id: str = typer.Argument(..., help="Task ID or prefix")) -> None:
    """Show what blocks a task and what it blocks."""
    from auctioneer.cli.main import _get_services
    from auctioneer.cli.task_commands import _resolve_task_id

    async def _show() -> None:
        services = await _get_services()
        try:
            resolved = await _resolve_task_id(task_id, services)
            view = await services["dependency_graph"].query(resolved)
            blocked = await services["dependency_graph"].is_blocked(resolved)
        finally:
            await services["database"].close()

        state = "[red]blocked[/red]" if blocked else "[green]unblocked[/green]"
        console.print(f"[bold]{resolved}[/bold] is {state}")

        console.print("\n[bold]Blocked by:[/bold]")
        for task in view.blocked_by:
            console.print(f"  {task.id[:8]} [{task.status.value}] {task.title}")
        if not view.blocked_by:
            console.print("  [dim](none)[/dim]")

        console.print("\n[bold]Blocking:[/bold]")
        for task in view.blocking:
            console.print(f"  {task.id[:8]} [{task.status.value}] {task.title}")
        if not view.blocking:
            console.print("  [dim](none)[/dim]")

    try:
        asyncio.run(_show())
    except AuctioneerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@deps_app.command("add")
def deps_add(
    task_id: str = typer.Argument(..., help="Blocked task ID or prefix"),
    blocked_by_id: str = typer.Argument(..., help="Blocking task ID or prefix"),
) -> None:
    """Record that TASK_ID is blocked by BLOCKED_BY_ID."""
    from auctioneer.cli.main import _get_services
    from auctioneer.cli.task_commands import _resolve_task_id

    async def _add() -> None:
        services = await _get_services()
        try:
            task = await _resolve_task_id(task_id, services)
            blocker = await _resolve_task_id(blocked_by_id, services)
            await services["dependency_graph"].add_edge(task, blocker)
        finally:
            await services["database"].close()
        console.print(f"[green]✓[/green] {task[:8]} is now blocked by {blocker[:8]}")

    try:
        asyncio.run(_add())
    except AuctioneerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@deps_app.command("remove")
def deps_remove(
    task_id: str = typer.Argument(..., help="Blocked task ID or prefix"),
    blocked_by_id: str = typer.Argument(..., help="Blocking task ID or prefix"),
) -> None:
    """Delete a blocked-by edge."""
    from auctioneer.cli.main import _get_services
    from auctioneer.cli.task_commands import _resolve_task_id

    async def _remove() -> None:
        services = await _get_services()
        try:
            task = await _resolve_task_id(task_id, services)
            blocker = await _resolve_task_id(blocked_by_id, services)
            await services["dependency_graph"].remove_edge(task, blocker)
        finally:
            await services["database"].close()
        console.print(f"[green]✓[/green] Removed dependency {task[:8]} -> {blocker[:8]}")

    try:
        asyncio.run(_remove())
    except AuctioneerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
