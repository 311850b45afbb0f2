"""Auction read path (ranked suggestions) and write path (assignment)."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from auctioneer.domain.models import (
    Agent,
    AgentSummary,
    AuctionResult,
    TaskDetail,
    TaskStatus,
)
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider
from auctioneer.infrastructure.exceptions import (
    AgentNotFoundError,
    InvalidRequestError,
    TaskNotFoundError,
)
from auctioneer.infrastructure.logger import get_logger
from auctioneer.services.scoring_engine import ScoringEngine

if TYPE_CHECKING:
    from auctioneer.infrastructure.database import Database

logger = get_logger(__name__)


class AuctionService:
    """Match backlog tasks to agents and record assignments.

    The read path never writes. The write path delegates to
    :meth:`Database.assign_task`, which updates the task and appends its
    audit event in a single transaction.
    """

    def __init__(
        self,
        database: "Database",
        agent_provider: AgentStateProvider,
        scoring_engine: ScoringEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = database
        self.agent_provider = agent_provider
        self.scoring = scoring_engine or ScoringEngine()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def list_agents(self) -> list[Agent]:
        """Take a roster snapshot off the event loop."""
        return await asyncio.to_thread(self.agent_provider.snapshot)

    def resolve_limit(self, limit: int | None) -> int:
        """Clamp a requested page size into ``[1, max_limit]``."""
        cfg = self.scoring.config
        if limit is None:
            return cfg.default_limit
        if limit < 1:
            raise InvalidRequestError("limit must be a positive integer")
        return min(limit, cfg.max_limit)

    async def run_auction(self, limit: int | None = None) -> AuctionResult:
        """Rank backlog tasks by urgency, each with ranked agent bids.

        The whole backlog is scored before ``limit`` is applied, so the
        page always holds the most urgent tasks.
        """
        page_size = self.resolve_limit(limit)
        now = self._clock()

        tasks = await self.db.list_tasks(status=TaskStatus.BACKLOG)
        agents = await self.list_agents()
        in_flight = await self.db.count_in_flight()

        ranked = self.scoring.rank_tasks(tasks, agents, now, in_flight)[:page_size]

        logger.debug(
            "auction_computed",
            backlog=len(tasks),
            returned=len(ranked),
            agents=len(agents),
        )

        return AuctionResult(
            tasks=ranked,
            agents=[
                AgentSummary(
                    id=a.id, name=a.name, status=a.status, active_sessions=a.active_sessions
                )
                for a in agents
            ],
            generated_at=now,
        )

    async def assign(self, task_id: str, agent_id: str) -> TaskDetail:
        """Hand a task to an agent.

        Raises:
            InvalidRequestError: If either id is empty
            TaskNotFoundError: If the task does not exist
            AgentNotFoundError: If the agent is not in the current roster
        """
        if not task_id or not agent_id:
            raise InvalidRequestError("taskId and agentId are required")

        if await self.db.get_task(task_id) is None:
            raise TaskNotFoundError(task_id)

        agents = await self.list_agents()
        if not any(a.id == agent_id for a in agents):
            raise AgentNotFoundError(agent_id)

        task = await self.db.assign_task(task_id, agent_id)
        logger.info("task_assigned", task_id=task_id, agent_id=agent_id)
        return task
