"""CLI tests using typer.testing.CliRunner with mocked services."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from auctioneer.cli.main import app
from auctioneer.domain.models import (
    AgentBid,
    AuctionResult,
    AuctionTask,
    TaskDetail,
    TaskPriority,
    TaskStatus,
)
from auctioneer.infrastructure.exceptions import CircularDependencyError, TaskNotFoundError
from typer.testing import CliRunner

runner = CliRunner()

TASK_ID = "ebec23ad-0000-4000-8000-000000000001"
BLOCKER_ID = "0f1e2d3c-0000-4000-8000-000000000002"


def _task(task_id: str = TASK_ID, **overrides) -> TaskDetail:
    fields = {
        "id": task_id,
        "title": "Ship",
        "category_id": "c1",
        "category_slug": "internal-dashboard",
    }
    fields.update(overrides)
    return TaskDetail(**fields)


def _services(**overrides) -> dict:
    database = AsyncMock()
    database.get_task = AsyncMock(return_value=_task())
    services = {
        "database": database,
        "auction_service": AsyncMock(),
        "dependency_graph": AsyncMock(),
    }
    services.update(overrides)
    return services


class TestAuctionCommands:
    """Test auction and assign."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_auction_table(self):
        services = _services()
        services["auction_service"].run_auction = AsyncMock(
            return_value=AuctionResult(
                tasks=[
                    AuctionTask(
                        id=TASK_ID,
                        title="Ship",
                        description="",
                        priority=TaskPriority.HIGH,
                        category_id="c1",
                        created_at=datetime.now(timezone.utc),
                        score=11.5,
                        agent_bids=[
                            AgentBid(agent_id="main", agent_name="Main", score=22, available=True)
                        ],
                        suggested_agent="main",
                    )
                ]
            )
        )

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["auction", "--limit", "5"])

        assert result.exit_code == 0
        assert "11.50" in result.stdout
        assert "main=22" in result.stdout
        services["auction_service"].run_auction.assert_awaited_once_with(5)
        services["database"].close.assert_awaited()

    def test_auction_empty_backlog(self):
        services = _services()
        services["auction_service"].run_auction = AsyncMock(return_value=AuctionResult())

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["auction"])

        assert result.exit_code == 0
        assert "Backlog is empty" in result.stdout

    def test_assign(self):
        services = _services()
        services["auction_service"].assign = AsyncMock(
            return_value=_task(status=TaskStatus.IN_PROGRESS, assigned_agent="main")
        )

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["assign", TASK_ID, "main"])

        assert result.exit_code == 0
        assert "assigned to" in result.stdout
        services["auction_service"].assign.assert_awaited_once_with(TASK_ID, "main")

    def test_assign_resolves_prefix(self):
        services = _services()
        services["database"].get_task = AsyncMock(return_value=None)
        services["database"].list_tasks = AsyncMock(return_value=[_task(), _task(BLOCKER_ID)])
        services["auction_service"].assign = AsyncMock(return_value=_task())

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["assign", "ebec", "main"])

        assert result.exit_code == 0
        services["auction_service"].assign.assert_awaited_once_with(TASK_ID, "main")

    def test_assign_unknown_prefix(self):
        services = _services()
        services["database"].get_task = AsyncMock(return_value=None)
        services["database"].list_tasks = AsyncMock(return_value=[])

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["assign", "zzz", "main"])

        assert result.exit_code == 1
        assert "No task found" in result.stdout

    def test_assign_error(self):
        services = _services()
        services["auction_service"].assign = AsyncMock(side_effect=TaskNotFoundError(TASK_ID))

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["assign", TASK_ID, "main"])

        assert result.exit_code == 1
        assert "Task not found" in result.stdout


class TestDependencyCommands:
    def test_add_cycle_is_reported(self):
        services = _services()
        services["dependency_graph"].add_edge = AsyncMock(
            side_effect=CircularDependencyError([TASK_ID, BLOCKER_ID, TASK_ID])
        )

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["deps", "add", TASK_ID, BLOCKER_ID])

        assert result.exit_code == 1
        assert "Circular dependency" in result.stdout

    def test_add(self):
        services = _services()
        services["dependency_graph"].add_edge = AsyncMock()

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["deps", "add", TASK_ID, TASK_ID])

        assert result.exit_code == 0
        assert "blocked by" in result.stdout


class TestTaskCommands:
    def test_add_unknown_category(self):
        services = _services()
        services["database"].get_category_by_slug = AsyncMock(return_value=None)

        with patch("auctioneer.cli.main._get_services", AsyncMock(return_value=services)):
            result = runner.invoke(app, ["task", "add", "Ship", "--category", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.stdout
        services["database"].create_task.assert_not_awaited()

    def test_add_rejects_unknown_priority(self):
        result = runner.invoke(app, ["task", "add", "Ship", "-c", "x", "--priority", "asap"])
        assert result.exit_code != 0


class TestInit:
    def test_init_writes_config_and_database(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (tmp_path / ".auctioneer" / "config.yaml").exists()
        assert (tmp_path / ".auctioneer" / "auctioneer.db").exists()

        again = runner.invoke(app, ["init"])
        assert again.exit_code == 0
        assert "Keeping existing" in again.stdout

    def test_init_skip_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        db_path = tmp_path / "custom.db"

        result = runner.invoke(app, ["init", "--skip-config", "--db-path", str(db_path)])

        assert result.exit_code == 0
        assert db_path.exists()
        assert not (tmp_path / ".auctioneer" / "config.yaml").exists()
