"""Task and category management commands."""

import asyncio
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from auctioneer.domain.models import Category, Task, TaskPriority, TaskStatus
from auctioneer.infrastructure.exceptions import AuctioneerError

console = Console()

task_app = typer.Typer(help="Task management", no_args_is_help=True)
category_app = typer.Typer(help="Category management", no_args_is_help=True)


async def _resolve_task_id(task_id_prefix: str, services: dict[str, Any]) -> str:
    """Resolve a task ID prefix to a full ID.

    Args:
        task_id_prefix: Full ID or prefix (e.g., 'ebec23ad')
        services: Services dictionary with database

    Returns:
        Full ID if exactly one task matches

    Raises:
        typer.Exit: If no task or several tasks match
    """
    database = services["database"]
    if await database.get_task(task_id_prefix) is not None:
        return task_id_prefix

    matches = [
        t for t in await database.list_tasks() if t.id.startswith(task_id_prefix.lower())
    ]

    if not matches:
        console.print(f"[red]Error:[/red] No task found matching '{task_id_prefix}'")
        raise typer.Exit(1)
    if len(matches) > 1:
        console.print(f"[red]Error:[/red] Multiple tasks match '{task_id_prefix}':")
        for task in matches:
            console.print(f"  {task.id} - {task.title}")
        raise typer.Exit(1)
    return matches[0].id


@category_app.command("add")
def category_add(
    name: str = typer.Argument(..., help="Display name"),
    slug: str | None = typer.Option(None, help="URL slug (default: derived from name)"),
) -> None:
    """Create a category."""
    from auctioneer.cli.main import _get_services

    async def _add() -> Category:
        services = await _get_services()
        try:
            category = Category(name=name, slug=slug or name.replace(" ", "-"))
            await services["database"].insert_category(category)
            return category
        finally:
            await services["database"].close()

    try:
        category = asyncio.run(_add())
    except (AuctioneerError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green]✓[/green] Category [cyan]{category.slug}[/cyan] created ({category.id})")


@task_app.command("add")
def task_add(
    title: str = typer.Argument(..., help="Task title"),
    category: str = typer.Option(..., "--category", "-c", help="Category slug"),
    description: str = typer.Option("", help="Task description"),
    priority: TaskPriority = typer.Option(TaskPriority.MEDIUM, help="Task priority"),  # noqa: B008
) -> None:
    """Add a task to the backlog."""
    from auctioneer.cli.main import _get_services

    async def _add() -> Task:
        services = await _get_services()
        database = services["database"]
        try:
            found = await database.get_category_by_slug(category)
            if found is None:
                console.print(f"[red]Error:[/red] Category '{category}' not found")
                raise typer.Exit(1)
            return await database.create_task(
                Task(
                    title=title,
                    description=description,
                    priority=priority,
                    category_id=found.id,
                )
            )
        finally:
            await database.close()

    try:
        task = asyncio.run(_add())
    except (AuctioneerError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green]✓[/green] Task [cyan]{task.id}[/cyan] added to backlog")


@task_app.command("list")
def task_list(
    status: TaskStatus | None = typer.Option(None, help="Filter by status"),  # noqa: B008
    limit: int = typer.Option(100, help="Maximum tasks to show"),
) -> None:
    """List tasks, oldest first."""
    from auctioneer.cli.main import _get_services

    async def _list() -> None:
        services = await _get_services()
        try:
            tasks = await services["database"].list_tasks(status=status, limit=limit)
        finally:
            await services["database"].close()

        table = Table(title="Tasks")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Category")
        table.add_column("Priority")
        table.add_column("Status")
        table.add_column("Agent")

        for task in tasks:
            table.add_row(
                task.id[:8],
                task.title,
                task.category_slug or "-",
                task.priority.value,
                task.status.value,
                task.assigned_agent or "-",
            )

        console.print(table)

    asyncio.run(_list())


@task_app.command("history")
def task_history(task_id: str = typer.Argument(..., help="Task ID or prefix")) -> None:
    """Show a task's status transitions."""
    from auctioneer.cli.main import _get_services

    async def _history() -> None:
        services = await _get_services()
        try:
            resolved = await _resolve_task_id(task_id, services)
            events = await services["database"].list_task_events(resolved)
        finally:
            await services["database"].close()

        table = Table(title=f"History {resolved[:8]}")
        table.add_column("When")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Agent")
        for event in events:
            table.add_row(
                event.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                event.from_status.value if event.from_status else "-",
                event.to_status.value,
                event.agent or "-",
            )
        console.print(table)

    asyncio.run(_history())
