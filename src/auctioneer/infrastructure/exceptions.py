"""Custom exception hierarchy for Auctioneer.

Every error carries the HTTP status the API layer answers with, so route
handlers raise domain errors and a single exception handler renders them.
"""


class AuctioneerError(Exception):
    """Base exception for all Auctioneer errors.

    Attributes:
        message: Error message describing what went wrong
        remediation: Optional guidance on how to fix the issue
    """

    status_code: int = 500

    def __init__(self, message: str, remediation: str | None = None):
        """Initialize error.

        Args:
            message: Error message
            remediation: Optional remediation guidance
        """
        super().__init__(message)
        self.remediation = remediation

    @property
    def message(self) -> str:
        """Return the bare error message without remediation."""
        return str(self.args[0])

    def __str__(self) -> str:
        """Return formatted error message with remediation if available."""
        if self.remediation:
            return f"{self.args[0]}\n\nRemediation: {self.remediation}"
        return str(self.args[0])


class InvalidRequestError(AuctioneerError):
    """Request fields are missing or malformed."""

    status_code = 400


class NotFoundError(AuctioneerError):
    """Base class for unknown entities."""

    status_code = 404


class TaskNotFoundError(NotFoundError):
    """Raised when a task ID doesn't exist.

    Attributes:
        task_id: The ID that was looked up
    """

    def __init__(self, task_id: str, message: str | None = None):
        super().__init__(message or "Task not found")
        self.task_id = task_id


class CategoryNotFoundError(NotFoundError):
    """Raised when a category ID or slug doesn't exist."""

    def __init__(self, key: str):
        super().__init__(f"Category not found: {key}")
        self.key = key


class AgentNotFoundError(NotFoundError):
    """Raised when an agent ID is absent from the current roster."""

    def __init__(self, agent_id: str):
        super().__init__("Agent not found")
        self.agent_id = agent_id


class DependencyNotFoundError(NotFoundError):
    """Raised when removing a blocked-by edge that does not exist."""

    def __init__(self, task_id: str, blocked_by_id: str):
        super().__init__("Dependency not found")
        self.task_id = task_id
        self.blocked_by_id = blocked_by_id


class SelfDependencyError(AuctioneerError):
    """Raised when a task is asked to block itself."""

    status_code = 400

    def __init__(self, task_id: str):
        super().__init__("A task cannot block itself")
        self.task_id = task_id


class CircularDependencyError(AuctioneerError):
    """Raised when a new blocked-by edge would close a cycle.

    Attributes:
        cycle: Task IDs forming the cycle, starting and ending at the
            dependent task of the rejected edge
    """

    status_code = 409

    def __init__(self, cycle: list[str]):
        super().__init__(
            "Circular dependency detected: " + " -> ".join(cycle),
            remediation="Remove one of the existing edges in the chain first",
        )
        self.cycle = cycle


class PersistenceError(AuctioneerError):
    """A database write failed and was rolled back."""

    status_code = 500
