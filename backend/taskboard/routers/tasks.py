import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from taskboard.core.database import get_db
from taskboard.core.errors import TaskNotFound, TaskValidationError
from taskboard.core.security import TokenClaims
from taskboard.core.websocket import (
    ConnectionManager,
    task_created_event,
    task_deleted_event,
    task_updated_event,
)
from taskboard.routers.auth import get_current_claims
from taskboard.schemas.task import (
    TaskCreate,
    TaskDeleted,
    TaskEnvelope,
    TaskListEnvelope,
    TaskResponse,
    TaskStats,
    TaskStatsEnvelope,
    TaskUpdate,
)
from taskboard.services.task_store import TaskStore, parse_task_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={404: {"description": "Not found"}},
)

def get_task_store(db: AsyncSession = Depends(get_db)) -> TaskStore:
    return TaskStore(db)

def get_connections(request: Request) -> ConnectionManager:
    return request.app.state.connections

def _valid_id(task_id: str) -> int:
    parsed = parse_task_id(task_id)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid task ID")
    return parsed

def _wire(task) -> dict:
    return TaskResponse.model_validate(task).model_dump(mode="json", by_alias=True)

@router.get("", response_model=TaskListEnvelope)
async def list_tasks(
    status: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
):
    tasks = await store.list(claims, status=status, sort_by=sortBy, sort_order=sortOrder)
    return TaskListEnvelope(
        message="Tasks retrieved successfully",
        tasks=[TaskResponse.model_validate(t) for t in tasks],
    )

@router.get("/stats", response_model=TaskStatsEnvelope)
async def task_stats(
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
):
    stats = await store.stats(claims)
    return TaskStatsEnvelope(message="Task stats retrieved successfully", stats=TaskStats(**stats))

@router.post("", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
    connections: ConnectionManager = Depends(get_connections),
):
    try:
        task = await store.create(claims, task_in.title, task_in.description, task_in.dueDate)
    except TaskValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    await connections.publish(task_created_event(_wire(task)), owner_id=claims.user_id)
    return TaskEnvelope(message="Task created successfully", task=TaskResponse.model_validate(task))

@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
):
    try:
        task = await store.get(claims, _valid_id(task_id))
    except TaskNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return TaskEnvelope(message="Task retrieved successfully", task=TaskResponse.model_validate(task))

@router.put("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_id: str,
    task_in: TaskUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
    connections: ConnectionManager = Depends(get_connections),
):
    parsed = _valid_id(task_id)
    try:
        task = await store.update(claims, parsed, task_in.to_patch())
    except TaskValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except TaskNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    await connections.publish(task_updated_event(_wire(task)), owner_id=claims.user_id)
    return TaskEnvelope(message="Task updated successfully", task=TaskResponse.model_validate(task))

@router.delete("/{task_id}", response_model=TaskDeleted)
async def delete_task(
    task_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    store: TaskStore = Depends(get_task_store),
    connections: ConnectionManager = Depends(get_connections),
):
    parsed = _valid_id(task_id)
    try:
        task = await store.remove(claims, parsed)
    except TaskNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    await connections.publish(task_deleted_event(parsed, task.title), owner_id=claims.user_id)
    return TaskDeleted(message="Task deleted successfully", taskId=parsed)
