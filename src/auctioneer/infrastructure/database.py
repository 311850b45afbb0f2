"""Database infrastructure using SQLite with WAL mode."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
from aiosqlite import Connection

from auctioneer.domain.models import (
    Category,
    Task,
    TaskDetail,
    TaskEvent,
    TaskPriority,
    TaskStatus,
)
from auctioneer.infrastructure.exceptions import (
    CategoryNotFoundError,
    PersistenceError,
    TaskNotFoundError,
)
from auctioneer.infrastructure.logger import get_logger

logger = get_logger(__name__)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in TaskStatus)
_PRIORITY_VALUES = ", ".join(f"'{p.value}'" for p in TaskPriority)

_TASK_DETAIL_SELECT = """
    SELECT t.*, c.name AS category_name, c.slug AS category_slug
    FROM tasks t
    LEFT JOIN categories c ON c.id = t.category_id
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Database:
    """SQLite database with WAL mode for concurrent access.

    Every write goes through :meth:`transaction`, which opens a
    ``BEGIN IMMEDIATE`` transaction so that check-then-write sequences
    (cycle check + edge insert, task update + event append) commit or
    roll back as one unit.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize database.

        Args:
            db_path: Path to SQLite database file, or ``:memory:``
        """
        self.db_path = db_path
        self._initialized = False
        self._shared_conn: Connection | None = None  # For :memory: databases
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize database schema and settings."""
        if self._initialized:
            return

        if not self._is_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with self._get_connection() as conn:
            # WAL mode is persistent in the file; :memory: ignores it
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute("PRAGMA busy_timeout=5000")
            await self._create_tables(conn)
            await conn.commit()

        self._initialized = True
        logger.debug("database_initialized", path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection.

        Only needed for :memory: databases to clean up the shared connection.
        File-based databases close connections automatically.
        """
        if self._shared_conn is not None:
            await self._shared_conn.close()
            self._shared_conn = None
            self._initialized = False

    @property
    def _is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[Connection]:
        """Get database connection with proper settings.

        For :memory: databases, maintains a shared connection to preserve data
        across multiple operations. For file databases, creates a new connection
        each time.
        """
        if self._is_memory:
            if self._shared_conn is None:
                self._shared_conn = await aiosqlite.connect(":memory:")
                self._shared_conn.row_factory = aiosqlite.Row
                await self._shared_conn.execute("PRAGMA foreign_keys=ON")
            yield self._shared_conn
        else:
            async with aiosqlite.connect(str(self.db_path)) as conn:
                conn.row_factory = aiosqlite.Row
                # SQLite defaults to foreign_keys=OFF on every new connection
                await conn.execute("PRAGMA foreign_keys=ON")
                await conn.execute("PRAGMA busy_timeout=5000")
                yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        """Run a block of statements as one atomic write.

        Commits when the block exits normally. Any exception rolls back every
        statement of the block; ``sqlite3.Error`` is re-raised as
        :class:`PersistenceError`, domain errors propagate unchanged.
        """
        async with self._write_lock:
            async with self._get_connection() as conn:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except sqlite3.Error as e:
                    await conn.rollback()
                    logger.error("transaction_failed", error=str(e))
                    raise PersistenceError(f"Database write failed: {e}") from e
                except BaseException:
                    await conn.rollback()
                    raise
                else:
                    await conn.commit()

    async def _create_tables(self, conn: Connection) -> None:
        """Create tables and indexes."""
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                slug TEXT NOT NULL UNIQUE,
                created_at TIMESTAMP NOT NULL
            )
            """
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                category_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'backlog',
                priority TEXT NOT NULL DEFAULT 'medium',
                assigned_agent TEXT,
                sort_order INTEGER NOT NULL DEFAULT 0,
                due_date TIMESTAMP,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE,
                CONSTRAINT status_vocabulary CHECK (status IN ({_STATUS_VALUES})),
                CONSTRAINT priority_vocabulary CHECK (priority IN ({_PRIORITY_VALUES}))
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS task_dependencies (
                task_id TEXT NOT NULL,
                blocked_by_id TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                PRIMARY KEY (task_id, blocked_by_id),
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                FOREIGN KEY (blocked_by_id) REFERENCES tasks(id) ON DELETE CASCADE,
                CHECK (task_id != blocked_by_id)
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS task_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id TEXT NOT NULL,
                from_status TEXT,
                to_status TEXT NOT NULL,
                agent TEXT,
                created_at TIMESTAMP NOT NULL,
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
            )
            """
        )

        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_status_created ON tasks(status, created_at)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_task_dependencies_blocked_by "
            "ON task_dependencies(blocked_by_id)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_task_events_task ON task_events(task_id, id)"
        )

    # Category operations
    async def insert_category(self, category: Category) -> None:
        """Insert a new category."""
        async with self.transaction() as conn:
            await conn.execute(
                "INSERT INTO categories (id, name, slug, created_at) VALUES (?, ?, ?, ?)",
                (category.id, category.name, category.slug, category.created_at.isoformat()),
            )

    async def get_category(self, category_id: str) -> Category | None:
        """Get category by ID."""
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,))
            row = await cursor.fetchone()
            return self._row_to_category(row) if row else None

    async def get_category_by_slug(self, slug: str) -> Category | None:
        """Get category by slug."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM categories WHERE slug = ?", (slug.strip().lower(),)
            )
            row = await cursor.fetchone()
            return self._row_to_category(row) if row else None

    async def list_categories(self) -> list[Category]:
        """List all categories by name."""
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT * FROM categories ORDER BY name ASC")
            rows = await cursor.fetchall()
            return [self._row_to_category(row) for row in rows]

    # Task operations
    async def create_task(self, task: Task, agent: str | None = None) -> TaskDetail:
        """Insert a task and its creation event in one transaction.

        Args:
            task: Task to insert
            agent: Agent recorded on the creation event (optional)

        Raises:
            CategoryNotFoundError: If the task's category does not exist
        """
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "SELECT 1 FROM categories WHERE id = ?", (task.category_id,)
            )
            if await cursor.fetchone() is None:
                raise CategoryNotFoundError(task.category_id)

            await conn.execute(
                """
                INSERT INTO tasks (
                    id, category_id, title, description, status, priority,
                    assigned_agent, sort_order, due_date, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.category_id,
                    task.title,
                    task.description,
                    task.status.value,
                    task.priority.value,
                    task.assigned_agent,
                    task.order,
                    _iso(task.due_date),
                    task.created_at.isoformat(),
                    task.updated_at.isoformat(),
                ),
            )
            await self._append_event(conn, task.id, None, task.status, agent)
            detail = await self._fetch_task_detail(conn, task.id)
            if detail is None:
                raise TaskNotFoundError(task.id)

        logger.info("task_created", task_id=task.id, status=task.status.value)
        return detail

    async def get_task(self, task_id: str) -> TaskDetail | None:
        """Get task (with category name and slug) by ID."""
        async with self._get_connection() as conn:
            return await self._fetch_task_detail(conn, task_id)

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        assigned_agent: str | None = None,
        limit: int | None = None,
    ) -> list[TaskDetail]:
        """List tasks with optional filters, oldest first.

        Args:
            status: Filter by task status
            assigned_agent: Filter by assigned agent ID
            limit: Maximum number of tasks to return (None = all)

        Returns:
            Tasks ordered by creation time, then insertion order
        """
        where_clauses: list[str] = []
        params: list[Any] = []

        if status:
            where_clauses.append("t.status = ?")
            params.append(status.value)

        if assigned_agent:
            where_clauses.append("t.assigned_agent = ?")
            params.append(assigned_agent)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT ?"
            params.append(limit)

        async with self._get_connection() as conn:
            cursor = await conn.execute(
                f"{_TASK_DETAIL_SELECT} {where_sql} ORDER BY t.created_at ASC, t.rowid ASC {limit_sql}",
                tuple(params),
            )
            rows = await cursor.fetchall()
            return [self._row_to_task_detail(row) for row in rows]

    async def update_task_status(
        self, task_id: str, status: TaskStatus, agent: str | None = None
    ) -> TaskDetail:
        """Move a task to a new status, logging an event if the status changed.

        Raises:
            TaskNotFoundError: If task_id does not exist
        """
        async with self.transaction() as conn:
            existing = await self._fetch_task_detail(conn, task_id)
            if existing is None:
                raise TaskNotFoundError(task_id)

            now = datetime.now(timezone.utc).isoformat()
            new_agent = agent if agent is not None else existing.assigned_agent
            await conn.execute(
                "UPDATE tasks SET status = ?, assigned_agent = ?, updated_at = ? WHERE id = ?",
                (status.value, new_agent, now, task_id),
            )
            if existing.status != status:
                await self._append_event(conn, task_id, existing.status, status, new_agent)

            updated = await self._fetch_task_detail(conn, task_id)
            if updated is None:
                raise TaskNotFoundError(task_id)

        return updated

    async def assign_task(self, task_id: str, agent_id: str) -> TaskDetail:
        """Claim a task for an agent: assignment, status and audit event in one commit.

        Sets ``assigned_agent`` and moves the task to in-progress, then appends
        exactly one ``TaskEvent`` recording the previous status. Nothing is
        written if any step fails.

        Raises:
            TaskNotFoundError: If task_id does not exist
            PersistenceError: If the write fails and is rolled back
        """
        async with self.transaction() as conn:
            existing = await self._fetch_task_detail(conn, task_id)
            if existing is None:
                raise TaskNotFoundError(task_id)

            now = datetime.now(timezone.utc).isoformat()
            await conn.execute(
                "UPDATE tasks SET assigned_agent = ?, status = ?, updated_at = ? WHERE id = ?",
                (agent_id, TaskStatus.IN_PROGRESS.value, now, task_id),
            )
            await self._append_event(
                conn, task_id, existing.status, TaskStatus.IN_PROGRESS, agent_id
            )
            updated = await self._fetch_task_detail(conn, task_id)
            if updated is None:
                raise TaskNotFoundError(task_id)

        return updated

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task; its dependency edges and events cascade.

        Returns:
            True if a task was deleted
        """
        async with self.transaction() as conn:
            cursor = await conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cursor.rowcount > 0

    async def list_task_events(self, task_id: str) -> list[TaskEvent]:
        """List a task's audit events in append order."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM task_events WHERE task_id = ? ORDER BY id ASC", (task_id,)
            )
            rows = await cursor.fetchall()
            return [self._row_to_task_event(row) for row in rows]

    async def count_in_flight(self) -> dict[str, int]:
        """Count in-progress tasks per assigned agent."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT assigned_agent, COUNT(*) AS n FROM tasks
                WHERE status = ? AND assigned_agent IS NOT NULL
                GROUP BY assigned_agent
                """,
                (TaskStatus.IN_PROGRESS.value,),
            )
            rows = await cursor.fetchall()
            return {row["assigned_agent"]: row["n"] for row in rows}

    async def _append_event(
        self,
        conn: Connection,
        task_id: str,
        from_status: TaskStatus | None,
        to_status: TaskStatus,
        agent: str | None,
    ) -> None:
        await conn.execute(
            """
            INSERT INTO task_events (task_id, from_status, to_status, agent, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                task_id,
                from_status.value if from_status else None,
                to_status.value,
                agent,
                datetime.now(timezone.utc).isoformat(),
            ),
        )

    async def _fetch_task_detail(self, conn: Connection, task_id: str) -> TaskDetail | None:
        cursor = await conn.execute(f"{_TASK_DETAIL_SELECT} WHERE t.id = ?", (task_id,))
        row = await cursor.fetchone()
        return self._row_to_task_detail(row) if row else None

    def _row_to_category(self, row: aiosqlite.Row) -> Category:
        """Convert database row to Category model."""
        return Category(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_task_detail(self, row: aiosqlite.Row) -> TaskDetail:
        """Convert joined task/category row to TaskDetail model."""
        row_dict = dict(row)
        return TaskDetail(
            id=row_dict["id"],
            category_id=row_dict["category_id"],
            title=row_dict["title"],
            description=row_dict["description"] or "",
            status=TaskStatus(row_dict["status"]),
            priority=TaskPriority(row_dict["priority"]),
            assigned_agent=row_dict["assigned_agent"],
            order=row_dict["sort_order"],
            due_date=_parse_dt(row_dict["due_date"]),
            created_at=datetime.fromisoformat(row_dict["created_at"]),
            updated_at=datetime.fromisoformat(row_dict["updated_at"]),
            category_name=row_dict.get("category_name"),
            category_slug=row_dict.get("category_slug"),
        )

    def _row_to_task_event(self, row: aiosqlite.Row) -> TaskEvent:
        """Convert database row to TaskEvent model."""
        return TaskEvent(
            id=row["id"],
            task_id=row["task_id"],
            from_status=TaskStatus(row["from_status"]) if row["from_status"] else None,
            to_status=TaskStatus(row["to_status"]),
            agent=row["agent"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
