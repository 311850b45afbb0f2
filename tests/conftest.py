"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from auctioneer.domain.models import Agent, Category, Task, TaskDetail, TaskPriority
from auctioneer.infrastructure.database import Database

from tests.fakes import StaticAgentProvider, make_agent


@pytest.fixture
def agent_factory() -> Callable[..., Agent]:
    return make_agent


@pytest.fixture
def static_provider() -> StaticAgentProvider:
    return StaticAgentProvider()


# Database fixtures
@pytest.fixture
def temp_db_path() -> Generator[Path, None, None]:
    """Create temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup, including WAL files
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
async def memory_db() -> AsyncGenerator[Database, None]:
    """Create in-memory database for fast tests."""
    db = Database(Path(":memory:"))
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
async def file_db(temp_db_path: Path) -> AsyncGenerator[Database, None]:
    """Create file-based database for persistence tests."""
    db = Database(temp_db_path)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
async def category(memory_db: Database) -> Category:
    """A category named "Internal Dashboard" stored in memory_db."""
    cat = Category(name="Internal Dashboard", slug="internal-dashboard")
    await memory_db.insert_category(cat)
    return cat


@pytest.fixture
def task_factory(
    memory_db: Database, category: Category
) -> Callable[..., Awaitable[TaskDetail]]:
    """Create backlog tasks in memory_db under ``category``."""

    async def _create(
        title: str = "Write release notes",
        priority: TaskPriority = TaskPriority.MEDIUM,
        age: timedelta = timedelta(0),
        description: str = "",
    ) -> TaskDetail:
        created = datetime.now(timezone.utc) - age
        return await memory_db.create_task(
            Task(
                title=title,
                description=description,
                priority=priority,
                category_id=category.id,
                created_at=created,
                updated_at=created,
            )
        )

    return _create
