"""Blocked-by dependency graph between tasks.

Edges are stored in ``task_dependencies`` as ``(task_id, blocked_by_id)``.
The edge set is kept acyclic: before an edge is inserted, a full
reachability search from the proposed blocker back to the dependent task
runs inside the same write transaction as the insert, so two concurrent
inserts cannot jointly close a cycle.
"""

from collections import deque
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import Field

from auctioneer.domain.models import DomainModel, TaskDependency, TaskDetail, TaskStatus
from auctioneer.infrastructure.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    SelfDependencyError,
    TaskNotFoundError,
)
from auctioneer.infrastructure.logger import get_logger

if TYPE_CHECKING:
    from aiosqlite import Connection

    from auctioneer.infrastructure.database import Database

logger = get_logger(__name__)


class DependencyView(DomainModel):
    """Both adjacency directions of one task."""

    blocked_by: list[TaskDetail] = Field(default_factory=list)
    blocking: list[TaskDetail] = Field(default_factory=list)


def find_path(graph: Mapping[str, set[str]], start: str, goal: str) -> list[str] | None:
    """Breadth-first search for a path from ``start`` to ``goal``.

    Args:
        graph: Adjacency map, node -> successors
        start: Node to search from
        goal: Node to reach

    Returns:
        Nodes from start to goal inclusive, or None if goal is unreachable
    """
    if start == goal:
        return [start]

    parents: dict[str, str] = {}
    seen = {start}
    queue: deque[str] = deque([start])

    while queue:
        node = queue.popleft()
        for neighbor in sorted(graph.get(node, ())):
            if neighbor in seen:
                continue
            parents[neighbor] = node
            if neighbor == goal:
                path = [goal]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                return list(reversed(path))
            seen.add(neighbor)
            queue.append(neighbor)

    return None


class DependencyGraph:
    """Add, remove and query blocked-by edges."""

    def __init__(self, database: "Database"):
        self.db = database

    async def add_edge(self, task_id: str, blocked_by_id: str) -> TaskDependency:
        """Record that ``task_id`` is blocked by ``blocked_by_id``.

        Re-adding an existing edge is a no-op and returns the stored edge.

        Raises:
            SelfDependencyError: If both ids are equal
            TaskNotFoundError: If either task does not exist
            CircularDependencyError: If ``blocked_by_id`` already depends,
                directly or transitively, on ``task_id``
        """
        if task_id == blocked_by_id:
            raise SelfDependencyError(task_id)

        async with self.db.transaction() as conn:
            for tid in (task_id, blocked_by_id):
                cursor = await conn.execute("SELECT 1 FROM tasks WHERE id = ?", (tid,))
                if await cursor.fetchone() is None:
                    raise TaskNotFoundError(tid)

            graph = await self._load_graph(conn)
            path = find_path(graph, blocked_by_id, task_id)
            if path is not None:
                cycle = [task_id, *path]
                logger.warning("dependency_cycle_rejected", cycle=cycle)
                raise CircularDependencyError(cycle)

            await conn.execute(
                """
                INSERT INTO task_dependencies (task_id, blocked_by_id, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT (task_id, blocked_by_id) DO NOTHING
                """,
                (task_id, blocked_by_id, datetime.now(timezone.utc).isoformat()),
            )
            cursor = await conn.execute(
                "SELECT * FROM task_dependencies WHERE task_id = ? AND blocked_by_id = ?",
                (task_id, blocked_by_id),
            )
            row = await cursor.fetchone()

        logger.info("dependency_added", task_id=task_id, blocked_by_id=blocked_by_id)
        return TaskDependency(
            task_id=row["task_id"],
            blocked_by_id=row["blocked_by_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def remove_edge(self, task_id: str, blocked_by_id: str) -> None:
        """Delete an edge.

        Raises:
            DependencyNotFoundError: If the edge does not exist
        """
        async with self.db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM task_dependencies WHERE task_id = ? AND blocked_by_id = ?",
                (task_id, blocked_by_id),
            )
            if cursor.rowcount == 0:
                raise DependencyNotFoundError(task_id, blocked_by_id)

        logger.info("dependency_removed", task_id=task_id, blocked_by_id=blocked_by_id)

    async def query(self, task_id: str) -> DependencyView:
        """Return the tasks blocking ``task_id`` and the tasks it blocks.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        if await self.db.get_task(task_id) is None:
            raise TaskNotFoundError(task_id)

        blocked_by = await self._neighbors(
            "SELECT blocked_by_id AS other FROM task_dependencies "
            "WHERE task_id = ? ORDER BY created_at ASC",
            task_id,
        )
        blocking = await self._neighbors(
            "SELECT task_id AS other FROM task_dependencies "
            "WHERE blocked_by_id = ? ORDER BY created_at ASC",
            task_id,
        )
        return DependencyView(blocked_by=blocked_by, blocking=blocking)

    async def is_blocked(self, task_id: str) -> bool:
        """True while any direct blocker of the task is not done."""
        view = await self.query(task_id)
        return any(t.status != TaskStatus.DONE for t in view.blocked_by)

    async def _neighbors(self, sql: str, task_id: str) -> list[TaskDetail]:
        async with self.db._get_connection() as conn:
            cursor = await conn.execute(sql, (task_id,))
            rows = await cursor.fetchall()
        tasks = []
        for row in rows:
            task = await self.db.get_task(row["other"])
            if task is not None:
                tasks.append(task)
        return tasks

    async def _load_graph(self, conn: "Connection") -> dict[str, set[str]]:
        """Adjacency map, task -> tasks it is blocked by."""
        graph: dict[str, set[str]] = {}
        cursor = await conn.execute("SELECT task_id, blocked_by_id FROM task_dependencies")
        for row in await cursor.fetchall():
            graph.setdefault(row["task_id"], set()).add(row["blocked_by_id"])
        return graph
