"""Ports consumed by the service layer."""

from auctioneer.domain.ports.agent_state_provider import AgentStateProvider

__all__ = ["AgentStateProvider"]
