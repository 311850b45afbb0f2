"""Infrastructure layer for Auctioneer."""

from auctioneer.infrastructure.agent_sources import AgentStateResolver
from auctioneer.infrastructure.config import Config, ConfigManager
from auctioneer.infrastructure.database import Database
from auctioneer.infrastructure.logger import get_logger, setup_logging

__all__ = [
    "AgentStateResolver",
    "Config",
    "ConfigManager",
    "Database",
    "get_logger",
    "setup_logging",
]
