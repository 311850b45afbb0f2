"""Blocked-by dependency endpoints for a task."""

from fastapi import APIRouter, Depends, Query, status

from auctioneer.api.deps import get_database, get_dependency_graph
from auctioneer.api.schemas import (
    AddDependencyRequest,
    AddDependencyResponse,
    SuccessResponse,
    error_responses,
)
from auctioneer.infrastructure.database import Database
from auctioneer.infrastructure.exceptions import InvalidRequestError
from auctioneer.services.dependency_graph import DependencyGraph, DependencyView

router = APIRouter(prefix="/tasks/{task_id}/dependencies", tags=["dependencies"])


@router.get("", response_model=DependencyView, responses=error_responses(404))
async def list_dependencies(
    task_id: str,
    graph: DependencyGraph = Depends(get_dependency_graph),
) -> DependencyView:
    return await graph.query(task_id)


@router.post(
    "",
    response_model=AddDependencyResponse,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(400, 404, 409),
)
async def add_dependency(
    task_id: str,
    body: AddDependencyRequest,
    graph: DependencyGraph = Depends(get_dependency_graph),
    db: Database = Depends(get_database),
) -> AddDependencyResponse:
    """Mark the task as blocked by ``blockedById``.

    Responds 400 for a self-dependency, 404 if either task is missing and
    409 if the edge would close a cycle.
    """
    if not body.blocked_by_id:
        raise InvalidRequestError("blockedById is required")
    dependency = await graph.add_edge(task_id, body.blocked_by_id)
    blocker = await db.get_task(body.blocked_by_id)
    return AddDependencyResponse(dependency=dependency, blocker=blocker)


@router.delete("", response_model=SuccessResponse, responses=error_responses(400, 404))
async def remove_dependency(
    task_id: str,
    blocked_by_id: str | None = Query(default=None, alias="blockedById"),
    blocked_by_id_snake: str | None = Query(default=None, alias="blocked_by_id"),
    graph: DependencyGraph = Depends(get_dependency_graph),
) -> SuccessResponse:
    blocker_id = blocked_by_id or blocked_by_id_snake
    if not blocker_id:
        raise InvalidRequestError("blockedById is required")
    await graph.remove_edge(task_id, blocker_id)
    return SuccessResponse()
