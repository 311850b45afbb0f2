"""FastAPI dependencies resolving services from application state."""

from fastapi import Request

from auctioneer.application.change_notifier import ChangeNotifier
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider
from auctioneer.infrastructure.database import Database
from auctioneer.services.auction_service import AuctionService
from auctioneer.services.dependency_graph import DependencyGraph


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_auction_service(request: Request) -> AuctionService:
    return request.app.state.auction_service


def get_dependency_graph(request: Request) -> DependencyGraph:
    return request.app.state.dependency_graph


def get_agent_provider(request: Request) -> AgentStateProvider:
    return request.app.state.agent_provider


def get_change_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.change_notifier
