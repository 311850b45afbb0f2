"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from auctioneer import __version__
from auctioneer.api.routes import agents, auction, dependencies, health
from auctioneer.api.schemas import ErrorResponse
from auctioneer.application.change_notifier import ChangeNotifier
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider
from auctioneer.infrastructure.agent_sources import AgentStateResolver
from auctioneer.infrastructure.config import Config, ConfigManager
from auctioneer.infrastructure.database import Database
from auctioneer.infrastructure.exceptions import AuctioneerError
from auctioneer.infrastructure.logger import get_logger
from auctioneer.services.auction_service import AuctionService
from auctioneer.services.dependency_graph import DependencyGraph
from auctioneer.services.scoring_engine import ScoringEngine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database and wire services on startup; release them on shutdown."""
    config: Config = app.state.config
    database = Database(app.state.database_path)
    await database.initialize()

    provider: AgentStateProvider = app.state.agent_provider or AgentStateResolver(config.agents)

    app.state.database = database
    app.state.agent_provider = provider
    app.state.auction_service = AuctionService(database, provider, ScoringEngine(config.auction))
    app.state.dependency_graph = DependencyGraph(database)
    app.state.change_notifier = ChangeNotifier(provider, config.stream)

    logger.info("api_started", database=str(app.state.database_path), version=__version__)

    try:
        yield
    finally:
        await app.state.change_notifier.close_all()
        await database.close()
        logger.info("api_stopped")


async def auctioneer_error_handler(request: Request, exc: AuctioneerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=str(exc))
    else:
        logger.info(
            "request_rejected", path=request.url.path, status=exc.status_code, error=exc.message
        )
    return JSONResponse(
        status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump()
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        detail = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    return JSONResponse(status_code=400, content=ErrorResponse(error=detail).model_dump())


def create_app(
    config: Config | None = None,
    database_path: Path | None = None,
    agent_provider: AgentStateProvider | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Loaded configuration (default: load from the current project)
        database_path: SQLite file, or ``Path(":memory:")`` (default: from config)
        agent_provider: Roster source (default: file-backed resolver from config)

    Returns:
        Application whose lifespan opens the database and services
    """
    if config is None or database_path is None:
        manager = ConfigManager()
        config = config or manager.load_config()
        if database_path is None:
            database_path = (
                Path(config.database_path).expanduser()
                if config.database_path
                else manager.get_database_path()
            )

    app = FastAPI(
        title="Auctioneer API",
        description="Task to agent allocation: auctions, dependencies and agent state",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.database_path = database_path
    app.state.agent_provider = agent_provider

    app.add_exception_handler(AuctioneerError, auctioneer_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(auction.router)
    app.include_router(dependencies.router)
    app.include_router(agents.router)
    app.include_router(health.router)

    return app
