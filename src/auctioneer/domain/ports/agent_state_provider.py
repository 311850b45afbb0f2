"""Abstract source of live agent state."""

from abc import ABC, abstractmethod
from pathlib import Path

from auctioneer.domain.models import Agent


class AgentStateProvider(ABC):
    """Abstract provider of agent roster snapshots.

    The scoring engine, auction service and change notifier depend only on
    this contract, never on the file formats behind it, so they can be
    exercised with fabricated snapshots.
    """

    @abstractmethod
    def snapshot(self) -> list[Agent]:
        """Return the current roster.

        Implementations re-read their sources on every call and must not
        cache: agent status feeds bid scoring directly.

        Returns:
            Agents deduplicated by id. Agents whose backing source is
            missing or malformed are omitted rather than failing the call.
        """
        pass

    @abstractmethod
    def watch_targets(self) -> list[Path]:
        """Return files whose modification should trigger a refresh."""
        pass
