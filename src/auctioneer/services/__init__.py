"""Service layer: scoring, auctions and the task dependency graph."""

from auctioneer.services.auction_service import AuctionService
from auctioneer.services.dependency_graph import DependencyGraph, DependencyView, find_path
from auctioneer.services.scoring_engine import ScoringEngine

__all__ = [
    "AuctionService",
    "DependencyGraph",
    "DependencyView",
    "ScoringEngine",
    "find_path",
]
