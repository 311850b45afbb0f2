"""Request and response bodies for the HTTP API.

Fields serialize with camelCase keys and accept either camelCase or
snake_case on input.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auctioneer.domain.models import TaskDependency, TaskDetail


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AssignRequest(ApiModel):
    """``POST /auction`` body."""

    task_id: str | None = None
    agent_id: str | None = None


class AssignResponse(ApiModel):
    success: bool = True
    task: TaskDetail


class AddDependencyRequest(ApiModel):
    """``POST /tasks/{id}/dependencies`` body."""

    blocked_by_id: str | None = None


class AddDependencyResponse(ApiModel):
    success: bool = True
    dependency: TaskDependency
    blocker: TaskDetail | None = None


class SuccessResponse(ApiModel):
    success: bool = True


class ErrorResponse(ApiModel):
    error: str


def error_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses`` entries for the ``{"error": ...}`` body."""
    return {code: {"model": ErrorResponse} for code in status_codes}


class HealthResponse(ApiModel):
    status: str
    database_connected: bool
    stream_subscribers: int
    timestamp: datetime
