"""Domain models for Auctioneer."""

from auctioneer.domain.models import (
    Agent,
    AgentBid,
    AgentSession,
    AgentStatus,
    AgentSummary,
    AuctionResult,
    AuctionTask,
    Category,
    SessionCost,
    Task,
    TaskDependency,
    TaskDetail,
    TaskEvent,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    "Agent",
    "AgentBid",
    "AgentSession",
    "AgentStatus",
    "AgentSummary",
    "AuctionResult",
    "AuctionTask",
    "Category",
    "SessionCost",
    "Task",
    "TaskDependency",
    "TaskDetail",
    "TaskEvent",
    "TaskPriority",
    "TaskStatus",
]
