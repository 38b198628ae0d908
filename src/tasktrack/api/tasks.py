"""Task API routes.

These routes are the HTTP interface to the owner-scoped task store. The
router is mounted behind the identity guard, and every handler also takes
the resolved RequestIdentity explicitly and passes it to the service.

Key patterns:
- POST for creation (201)
- PATCH for partial updates (only sent fields change)
- Query param for filtering (completed)
- 404 for a task that is missing *or* owned by someone else
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import RequestIdentity, get_current_identity
from tasktrack.db.engine import get_db
from tasktrack.schemas.task import TaskCreate, TaskRead, TaskUpdate
from tasktrack.services.task_service import TaskService

router = APIRouter(prefix="/tasks")


def _task_svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Task not found")


@router.get("", response_model=list[TaskRead])
async def list_tasks(
    completed: Optional[bool] = Query(None, description="Filter by completion"),
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    """List the caller's tasks, optionally only (in)complete ones."""
    if completed is None:
        return await svc.list_all(identity)
    return await svc.list_by_completion(identity, completed)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    """Create a new task owned by the caller."""
    return await svc.create(identity, title=body.title, description=body.description)


@router.delete("", status_code=204)
async def delete_all_tasks(
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    """Delete every task the caller owns. Other users' tasks are untouched."""
    await svc.delete_all(identity)
    return Response(status_code=204)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    task = await svc.get_by_id(identity, task_id)
    if not task:
        raise _not_found()
    return task


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    body: TaskUpdate,
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task (title, description, completed)."""
    task = await svc.update(identity, task_id, body.model_dump(exclude_unset=True))
    if not task:
        raise _not_found()
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    identity: RequestIdentity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    if not await svc.delete(identity, task_id):
        raise _not_found()
    return Response(status_code=204)
