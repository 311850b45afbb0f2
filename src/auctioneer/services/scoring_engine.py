"""Task urgency and agent bid scoring.

Urgency orders the backlog:

    urgency = priority_weight + min(age_days / saturation_days, 1) * age_bonus_cap

Bids rank agents for one task. Every bid starts from ``base_score`` so each
agent stays a biddable candidate, then collects:

- category affinity points configured for the task's category slug
- keyword affinity points for every rule matching title + description
- ``idle_bonus`` when the agent is idle and has not been active recently
- ``-busy_penalty`` when the agent is active

The engine is pure: the same tasks, agents and clock always produce the same
result, and nothing is read or written outside its arguments.
"""

import re
from datetime import datetime, timedelta, timezone

from auctioneer.domain.models import (
    Agent,
    AgentBid,
    AgentStatus,
    AuctionTask,
    TaskDetail,
    TaskPriority,
)
from auctioneer.infrastructure.config import AuctionConfig
from auctioneer.utils.durations import SECONDS_PER_DAY


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ScoringEngine:
    """Scores tasks and agent bids from configured weights and affinities."""

    def __init__(self, config: AuctionConfig | None = None):
        self.config = config or AuctionConfig()
        self._keyword_rules = [
            (re.compile(rule.pattern, re.IGNORECASE), rule.scores)
            for rule in self.config.keyword_affinity
        ]

    def priority_weight(self, priority: TaskPriority | str) -> float:
        key = priority.value if isinstance(priority, TaskPriority) else priority
        return self.config.priority_weights.get(key, self.config.default_priority_weight)

    def age_bonus(self, created_at: datetime, now: datetime) -> float:
        """Starvation bonus, saturating at ``age_bonus_cap``.

        Tasks dated in the future get no bonus.
        """
        age_days = (_as_utc(now) - _as_utc(created_at)).total_seconds() / SECONDS_PER_DAY
        fraction = min(max(age_days, 0.0) / self.config.age_saturation_days, 1.0)
        return fraction * self.config.age_bonus_cap

    def urgency_score(self, task: TaskDetail, now: datetime) -> float:
        return self.priority_weight(task.priority) + self.age_bonus(task.created_at, now)

    def score_bid(
        self, task: TaskDetail, agent: Agent, now: datetime, in_flight: int = 0
    ) -> AgentBid:
        """Score one agent's candidacy for one task.

        Args:
            task: Backlog task being auctioned
            agent: Agent from the current snapshot
            now: Reference time for recency checks
            in_flight: Tasks currently in progress under this agent

        Returns:
            Bid with deduplicated reasons in the order they were earned
        """
        cfg = self.config
        score = cfg.base_score
        reasons: list[str] = []

        category_scores = cfg.category_affinity.get(task.category_slug or "", {})
        if category_scores.get(agent.id):
            score += category_scores[agent.id]
            reasons.append(f"category match ({task.category_name or task.category_slug})")

        search_text = f"{task.title} {task.description}"
        for pattern, scores in self._keyword_rules:
            if scores.get(agent.id) and pattern.search(search_text):
                score += scores[agent.id]
                reasons.append("keyword match")

        is_idle = agent.status in (AgentStatus.IDLE, AgentStatus.NEVER)
        recently_active = agent.last_active is not None and _as_utc(now) - _as_utc(
            agent.last_active
        ) < timedelta(seconds=cfg.recent_activity_seconds)
        if is_idle and not recently_active:
            score += cfg.idle_bonus
            reasons.append("agent idle/available")
        elif agent.status == AgentStatus.ACTIVE:
            score -= cfg.busy_penalty
            reasons.append("agent active (busy)")

        load = max(agent.active_sessions, in_flight)

        return AgentBid(
            agent_id=agent.id,
            agent_name=agent.name,
            score=score,
            reasons=list(dict.fromkeys(reasons)),
            available=load < cfg.availability_cap,
        )

    def rank_bids(
        self,
        task: TaskDetail,
        agents: list[Agent],
        now: datetime,
        in_flight: dict[str, int] | None = None,
    ) -> list[AgentBid]:
        """All bids for a task, highest score first; equal scores keep roster order."""
        in_flight = in_flight or {}
        bids = [self.score_bid(task, a, now, in_flight.get(a.id, 0)) for a in agents]
        return sorted(bids, key=lambda b: b.score, reverse=True)

    def score_task(
        self,
        task: TaskDetail,
        agents: list[Agent],
        now: datetime,
        in_flight: dict[str, int] | None = None,
    ) -> AuctionTask:
        bids = self.rank_bids(task, agents, now, in_flight)
        suggested = next((b.agent_id for b in bids if b.available), None)
        return AuctionTask(
            id=task.id,
            title=task.title,
            description=task.description,
            priority=task.priority,
            category_id=task.category_id,
            category_name=task.category_name,
            category_slug=task.category_slug,
            assigned_agent=task.assigned_agent,
            created_at=task.created_at,
            score=self.urgency_score(task, now),
            agent_bids=bids,
            suggested_agent=suggested,
        )

    def rank_tasks(
        self,
        tasks: list[TaskDetail],
        agents: list[Agent],
        now: datetime,
        in_flight: dict[str, int] | None = None,
    ) -> list[AuctionTask]:
        """Score every task; highest urgency first, ties keep input order."""
        scored = [self.score_task(t, agents, now, in_flight) for t in tasks]
        return sorted(scored, key=lambda t: t.score, reverse=True)
