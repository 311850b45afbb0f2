"""HTTP route modules."""

from auctioneer.api.routes import agents, auction, dependencies, health

__all__ = ["agents", "auction", "dependencies", "health"]
