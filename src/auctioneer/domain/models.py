"""Core domain models for Auctioneer."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class DomainModel(BaseModel):
    """Base for models exchanged with clients; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskStatus(str, Enum):
    """Task board columns."""

    BACKLOG = "backlog"  # Unclaimed, eligible for auction
    QUEUED = "queued"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"
    FAILED = "failed"


class TaskPriority(str, Enum):
    """User-assigned task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Category(DomainModel):
    """Board category owning a set of tasks."""

    id: str = Field(default_factory=_new_id)
    name: str
    slug: str
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        """Normalize slug to lowercase without surrounding whitespace."""
        v = v.strip().lower()
        if not v:
            raise ValueError("slug cannot be empty")
        return v


class Task(DomainModel):
    """A unit of work on the board.

    Attributes:
        id: Unique task identifier
        title: Short title shown on the card
        description: Free text, also searched by keyword affinity rules
        assigned_agent: ID of the agent holding the task, if any
        order: Manual rank within its status column
    """

    id: str = Field(default_factory=_new_id)
    title: str
    description: str = ""
    status: TaskStatus = Field(default=TaskStatus.BACKLOG)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    category_id: str
    assigned_agent: str | None = None
    order: int = 0
    due_date: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Strip whitespace and reject empty titles."""
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class TaskDetail(Task):
    """Task joined with its category for display."""

    category_name: str | None = None
    category_slug: str | None = None


class TaskDependency(DomainModel):
    """Blocked-by edge: ``task_id`` cannot proceed until ``blocked_by_id`` is done."""

    task_id: str
    blocked_by_id: str
    created_at: datetime = Field(default_factory=_utcnow)


class TaskEvent(DomainModel):
    """Append-only audit record of a status transition."""

    id: int | None = None
    task_id: str
    from_status: TaskStatus | None = None  # None for task creation
    to_status: TaskStatus
    agent: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class AgentStatus(str, Enum):
    """Liveness derived from session activity age."""

    ACTIVE = "active"  # At least one session updated inside the activity window
    IDLE = "idle"  # Has sessions, none recent
    NEVER = "never"  # No sessions at all


class SessionCost(DomainModel):
    """Estimated spend of one session."""

    estimated: float
    model: str
    tokens: int


class AgentSession(DomainModel):
    """One entry of an agent's session index."""

    key: str
    updated_at: datetime | None = None
    total_tokens: int = 0
    context_tokens: int = 0
    model: str = "unknown"
    last_channel: str = "unknown"
    is_subagent: bool = False
    cost: SessionCost | None = None


class Agent(DomainModel):
    """Point-in-time projection of a worker agent.

    Recomputed from external sources on every resolver call; never persisted.
    """

    id: str
    name: str
    model: str = "unknown"
    workspace: str = ""
    skills: list[str] = Field(default_factory=list)
    context_tokens: int = 0
    is_default: bool = False
    sessions: list[AgentSession] = Field(default_factory=list)
    total_sessions: int = 0
    active_sessions: int = 0
    last_active: datetime | None = None
    status: AgentStatus = AgentStatus.NEVER


class AgentBid(DomainModel):
    """Scored, explained candidacy of one agent for one task."""

    agent_id: str
    agent_name: str
    score: int
    reasons: list[str] = Field(default_factory=list)
    available: bool


class AuctionTask(DomainModel):
    """A backlog task with its urgency score and ranked bids."""

    id: str
    title: str
    description: str
    priority: TaskPriority
    category_id: str
    category_name: str | None = None
    category_slug: str | None = None
    assigned_agent: str | None = None
    created_at: datetime
    score: float
    agent_bids: list[AgentBid] = Field(default_factory=list)
    suggested_agent: str | None = None


class AgentSummary(DomainModel):
    """Compact agent row returned alongside auction results."""

    id: str
    name: str
    status: AgentStatus
    active_sessions: int


class AuctionResult(DomainModel):
    """Full read-path answer: ranked tasks plus the agent roster used."""

    tasks: list[AuctionTask] = Field(default_factory=list)
    agents: list[AgentSummary] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)
