"""Unit tests for ScoringEngine.

Tests cover:
- Priority weights and age bonus (ordering, saturation, monotonicity)
- Bid scoring (base score, idle bonus, busy penalty, affinities, reasons)
- Availability cap and suggested agent selection
- Task ordering and tie-breaking
"""

from datetime import datetime, timedelta, timezone

import pytest
from auctioneer.domain.models import AgentStatus, TaskDetail, TaskPriority
from auctioneer.infrastructure.config import AuctionConfig, KeywordAffinityRule
from auctioneer.services.scoring_engine import ScoringEngine

from tests.fakes import NOW, make_agent


def _task(
    title: str = "Write release notes",
    priority: TaskPriority = TaskPriority.MEDIUM,
    age: timedelta = timedelta(0),
    category_slug: str = "misc",
    description: str = "",
) -> TaskDetail:
    return TaskDetail(
        title=title,
        description=description,
        priority=priority,
        category_id="cat-1",
        category_name=category_slug.title(),
        category_slug=category_slug,
        created_at=NOW - age,
        updated_at=NOW - age,
    )


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine(AuctionConfig())


class TestUrgencyScore:
    """Test task urgency from priority and age."""

    def test_high_priority_eight_days_old_scores_13(self, engine):
        task = _task(priority=TaskPriority.HIGH, age=timedelta(days=8))
        assert engine.urgency_score(task, NOW) == pytest.approx(13.0)

    def test_higher_priority_always_scores_higher_at_equal_age(self, engine):
        for age in (timedelta(0), timedelta(days=3), timedelta(days=30)):
            scores = [
                engine.urgency_score(_task(priority=p, age=age), NOW)
                for p in (
                    TaskPriority.LOW,
                    TaskPriority.MEDIUM,
                    TaskPriority.HIGH,
                    TaskPriority.URGENT,
                )
            ]
            assert scores == sorted(scores)
            assert len(set(scores)) == len(scores)

    def test_age_bonus_is_monotonic_and_capped(self, engine):
        ages = [0, 0.5, 1, 3, 6.9, 7, 8, 30, 365]
        bonuses = [engine.age_bonus(NOW - timedelta(days=d), NOW) for d in ages]

        assert bonuses == sorted(bonuses)
        assert max(bonuses) == pytest.approx(3.0)
        assert all(0 <= b <= 3.0 for b in bonuses)

    def test_age_bonus_half_week(self, engine):
        assert engine.age_bonus(NOW - timedelta(days=3.5), NOW) == pytest.approx(1.5)

    def test_future_created_at_gets_no_bonus(self, engine):
        assert engine.age_bonus(NOW + timedelta(days=2), NOW) == 0

    def test_naive_created_at_treated_as_utc(self, engine):
        naive = (NOW - timedelta(days=7)).replace(tzinfo=None)
        assert engine.age_bonus(naive, NOW) == pytest.approx(3.0)

    def test_unknown_priority_uses_default_weight(self, engine):
        assert engine.priority_weight("someday") == 3.0


class TestBidScore:
    """Test per-agent bid scoring."""

    def test_idle_agent_without_affinity_scores_6(self, engine):
        agent = make_agent("alpha", status=AgentStatus.IDLE)
        bid = engine.score_bid(_task(), agent, NOW)

        assert bid.score == 6
        assert bid.available is True
        assert bid.reasons == ["agent idle/available"]

    def test_never_seen_agent_gets_idle_bonus(self, engine):
        agent = make_agent("alpha", status=AgentStatus.NEVER)
        assert engine.score_bid(_task(), agent, NOW).score == 6

    def test_idle_but_recently_active_gets_no_bonus(self, engine):
        agent = make_agent(
            "alpha", status=AgentStatus.IDLE, last_active=NOW - timedelta(minutes=45)
        )
        bid = engine.score_bid(_task(), agent, NOW)

        assert bid.score == 1
        assert bid.reasons == []

    def test_active_agent_is_penalized(self, engine):
        agent = make_agent(
            "alpha", status=AgentStatus.ACTIVE, active_sessions=1, last_active=NOW
        )
        bid = engine.score_bid(_task(), agent, NOW)

        assert bid.score == -1
        assert bid.reasons == ["agent active (busy)"]

    def test_category_affinity(self, engine):
        task = _task(category_slug="kalshi-vol-arb")
        bid = engine.score_bid(task, make_agent("research-agent"), NOW)

        assert bid.score == 1 + 8 + 5
        assert bid.reasons[0] == "category match (Kalshi-Vol-Arb)"

    def test_every_matching_keyword_rule_adds_points(self, engine):
        # Matches the "research|knowledge|data|graph" and "summary|digest|analysis" rules
        task = _task(title="Weekly research digest")
        bid = engine.score_bid(task, make_agent("research-agent"), NOW)

        assert bid.score == 1 + 9 + 8 + 5
        assert bid.reasons == ["keyword match", "agent idle/available"]

    def test_keyword_match_is_case_insensitive_and_searches_description(self, engine):
        task = _task(title="Misc", description="Update the GITHUB profile")
        bid = engine.score_bid(task, make_agent("main"), NOW)
        assert "keyword match" in bid.reasons

    def test_agent_without_rule_points_is_not_credited(self, engine):
        task = _task(title="Update the portfolio")
        bid = engine.score_bid(task, make_agent("research-agent"), NOW)
        assert "keyword match" not in bid.reasons

    def test_custom_rules(self):
        config = AuctionConfig(
            category_affinity={},
            keyword_affinity=[KeywordAffinityRule(pattern=r"\bdocs?\b", scores={"alpha": 4})],
            idle_bonus=0,
        )
        bid = ScoringEngine(config).score_bid(_task(title="Fix docs"), make_agent("alpha"), NOW)
        assert bid.score == 5


class TestAvailability:
    """Test the availability cap and suggested agent."""

    def test_saturated_agent_is_never_suggested(self, engine):
        star = make_agent("main", status=AgentStatus.IDLE, active_sessions=3)
        backup = make_agent("alpha", status=AgentStatus.ACTIVE, active_sessions=1, last_active=NOW)
        task = _task(title="Deploy the portfolio to github")

        result = engine.score_task(task, [backup, star], NOW)

        assert result.agent_bids[0].agent_id == "main"
        assert result.agent_bids[0].available is False
        assert result.suggested_agent == "alpha"

    def test_availability_is_strictly_below_cap(self, engine):
        assert engine.score_bid(_task(), make_agent("a", active_sessions=2), NOW).available
        assert not engine.score_bid(_task(), make_agent("a", active_sessions=3), NOW).available

    def test_in_flight_tasks_count_toward_cap(self, engine):
        bid = engine.score_bid(_task(), make_agent("alpha"), NOW, in_flight=3)
        assert bid.available is False

    def test_no_available_agent_means_no_suggestion(self, engine):
        agents = [make_agent("a", active_sessions=5), make_agent("b", active_sessions=3)]
        assert engine.score_task(_task(), agents, NOW).suggested_agent is None

    def test_no_agents(self, engine):
        result = engine.score_task(_task(), [], NOW)
        assert result.agent_bids == []
        assert result.suggested_agent is None


class TestOrdering:
    """Test bid and task ordering."""

    def test_bids_sorted_descending_with_stable_ties(self, engine):
        agents = [
            make_agent("beta", status=AgentStatus.ACTIVE, last_active=NOW, active_sessions=1),
            make_agent("alpha"),
            make_agent("gamma"),
        ]
        bids = engine.rank_bids(_task(), agents, NOW)
        assert [b.agent_id for b in bids] == ["alpha", "gamma", "beta"]

    def test_tasks_sorted_by_urgency_with_creation_order_ties(self, engine):
        first = _task(title="first", priority=TaskPriority.LOW)
        second = _task(title="second", priority=TaskPriority.HIGH)
        third = _task(title="third", priority=TaskPriority.LOW)

        ranked = engine.rank_tasks([first, second, third], [], NOW)
        assert [t.title for t in ranked] == ["second", "first", "third"]

    def test_scoring_is_deterministic(self, engine):
        agents = [make_agent("main"), make_agent("research-agent")]
        task = _task(title="Trading strategy analysis")
        assert engine.score_task(task, agents, NOW) == engine.score_task(task, agents, NOW)
