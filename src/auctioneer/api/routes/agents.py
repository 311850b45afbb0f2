"""Agent roster snapshot and live stream."""

import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from auctioneer.api.deps import get_agent_provider, get_change_notifier
from auctioneer.application.change_notifier import AgentStreamSubscription, ChangeNotifier
from auctioneer.domain.models import Agent
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider

router = APIRouter(prefix="/agents", tags=["agents"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def agent_event_stream(subscription: AgentStreamSubscription) -> AsyncIterator[str]:
    """Yield encoded frames until the subscription closes or the client goes away."""
    try:
        await subscription.open()
        async for frame in subscription:
            yield frame.encode()
    finally:
        subscription.close()


@router.get("", response_model=list[Agent])
async def list_agents(
    provider: AgentStateProvider = Depends(get_agent_provider),
) -> list[Agent]:
    return await asyncio.to_thread(provider.snapshot)


@router.get("/stream")
async def stream_agents(
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> StreamingResponse:
    """Server-sent events: a JSON agent array per update, plus heartbeats."""
    return StreamingResponse(
        agent_event_stream(notifier.subscribe()),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
