"""Auction endpoints: ranked suggestions and assignment."""

from fastapi import APIRouter, Depends, Query

from auctioneer.api.deps import get_auction_service
from auctioneer.api.schemas import AssignRequest, AssignResponse, error_responses
from auctioneer.domain.models import AuctionResult
from auctioneer.services.auction_service import AuctionService

router = APIRouter(tags=["auction"])


@router.get("/auction", response_model=AuctionResult, responses=error_responses(400, 500))
async def get_auction(
    limit: int | None = Query(default=None),
    service: AuctionService = Depends(get_auction_service),
) -> AuctionResult:
    """Backlog tasks by descending urgency, each with ranked agent bids."""
    return await service.run_auction(limit)


@router.post(
    "/auction", response_model=AssignResponse, responses=error_responses(400, 404, 500)
)
async def assign_task(
    body: AssignRequest,
    service: AuctionService = Depends(get_auction_service),
) -> AssignResponse:
    """Assign a task to an agent and move it to in-progress."""
    task = await service.assign(body.task_id or "", body.agent_id or "")
    return AssignResponse(task=task)
