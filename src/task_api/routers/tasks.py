from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..identifiers import is_valid_task_id
from ..models import WRITABLE_FIELDS
from ..repositories import Repository
from ..schemas import MessageOut, TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)

_NOT_FOUND = "Task not found"


# PUBLIC_INTERFACE
def get_repository(request: Request) -> Repository:
    """
    Dependency returning the repository attached to the application at startup.
    """
    return request.app.state.repository


def _valid_task_id(task_id: str) -> str:
    """
    Dependency performing the syntactic id check. Runs before any store call so a
    malformed id (400) is never reported as not found (404).
    """
    if not is_valid_task_id(task_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid task ID format")
    return task_id


async def _update_body(request: Request, task_id: str = Depends(_valid_task_id)) -> Any:
    """
    Dependency reading the raw update body. Depending on _valid_task_id keeps the
    id check ahead of JSON decoding, so a malformed id wins over a malformed body.
    Returns None for a missing body.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        ) from e


def _to_out(entity: Dict[str, Any]) -> TaskOut:
    return TaskOut(**entity)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new Task and return the created resource.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_task(payload: TaskCreate, repo: Repository = Depends(get_repository)) -> TaskOut:
    """
    Create a new Task. Missing description defaults to "" and completed to false.
    """
    created = repo.insert(payload)
    logger.info("Created task %s", created["id"])
    return _to_out(created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="List all tasks, optionally filtered by completion status.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Store unavailable"},
    },
)
def list_tasks(
    completed: Optional[bool] = Query(None, description="Filter by completion status"),
    repo: Repository = Depends(get_repository),
) -> List[TaskOut]:
    """
    List tasks. An empty store yields an empty array.
    """
    return [_to_out(t) for t in repo.find_all(completed=completed)]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single Task by ID.",
    responses={
        200: {"description": "Task found"},
        400: {"description": "Malformed task ID"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str = Depends(_valid_task_id), repo: Repository = Depends(get_repository)) -> TaskOut:
    """
    Retrieve a single Task by its ID.
    """
    item = repo.find_by_id(task_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return _to_out(item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Partially update a Task. Only the supplied fields (title, description, completed) "
        "change; the body must contain at least one of them."
    ),
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": TaskUpdate.model_json_schema()}},
            "required": True,
        }
    },
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Malformed task ID or empty update"},
        404: {"description": "Task not found"},
        422: {"description": "Validation error"},
    },
)
def update_task(
    task_id: str = Depends(_valid_task_id),
    payload: Any = Depends(_update_body),
    repo: Repository = Depends(get_repository),
) -> TaskOut:
    """
    Partial update of a Task. The body is validated here rather than by FastAPI so
    that the id check and the empty-body check come first.
    """
    # Any empty JSON container counts as an empty update.
    if payload is None or (isinstance(payload, (dict, list)) and not payload):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty update object")
    if not isinstance(payload, dict):
        raise RequestValidationError(
            [{"type": "dict_type", "loc": ("body",), "msg": "Update body must be a JSON object", "input": payload}]
        )
    if not any(key in payload for key in WRITABLE_FIELDS):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty update object")

    try:
        update = TaskUpdate.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e

    updated = repo.update_by_id(task_id, update)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(update.model_fields_set)))
    return _to_out(updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageOut,
    summary="Delete Task",
    description="Delete a Task by ID.",
    responses={
        200: {"description": "Task deleted"},
        400: {"description": "Malformed task ID"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str = Depends(_valid_task_id), repo: Repository = Depends(get_repository)) -> MessageOut:
    """
    Delete a Task. Returns 200 with a confirmation message, 404 if not found.
    """
    if not repo.delete_by_id(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info("Deleted task %s", task_id)
    return MessageOut(message="Task deleted")
