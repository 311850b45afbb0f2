"""Health check endpoint."""

from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends

from auctioneer.api.deps import get_change_notifier, get_database
from auctioneer.api.schemas import HealthResponse
from auctioneer.application.change_notifier import ChangeNotifier
from auctioneer.infrastructure.database import Database
from auctioneer.infrastructure.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def health_check(
    db: Database = Depends(get_database),
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> HealthResponse:
    """Report database connectivity and open stream count."""
    database_connected = True
    try:
        await db.count_in_flight()
    except aiosqlite.Error as e:
        logger.error("health_check_database_failed", error=str(e))
        database_connected = False

    return HealthResponse(
        status="healthy" if database_connected else "degraded",
        database_connected=database_connected,
        stream_subscribers=notifier.subscriber_count,
        timestamp=datetime.now(timezone.utc),
    )
