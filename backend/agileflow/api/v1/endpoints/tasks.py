from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from agileflow.core.database import get_db
from agileflow.models.task import TaskStatus
from agileflow.modules.access.policy import Actor
from agileflow.modules.auth.dependencies import get_current_actor, require_task_assignment
from agileflow.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskEnvelope,
    TaskListEnvelope,
    TaskMutationEnvelope,
    TaskStatsEnvelope,
)
from agileflow.services.email_service import (
    EmailService,
    dispatch_task_assignment_email,
    get_email_service,
)
from agileflow.services.task_service import TaskService


router = APIRouter()


@router.get("/stats", response_model=TaskStatsEnvelope)
async def get_task_stats(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    stats = await TaskService(db).get_stats(actor)
    return {"stats": stats.to_dict()}


@router.get("", response_model=TaskListEnvelope)
async def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status"),
    assigned_to: Optional[str] = Query(None),
    assigned_by: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Tasks visible to the caller, newest first"""
    task_status = None
    if status_filter:
        try:
            task_status = TaskStatus(status_filter)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")

    tasks = await TaskService(db).list_tasks(
        actor,
        status=task_status,
        assigned_to=assigned_to,
        assigned_by=assigned_by,
    )
    return {"tasks": tasks}


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return {"task": await TaskService(db).get_task(actor, task_id)}


@router.post("", response_model=TaskMutationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_task_assignment),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Assign a task; the assignee is notified by email in the background"""
    task = await TaskService(db).create_task(
        actor,
        title=payload.title,
        assigned_to=payload.assigned_to,
        description=payload.description,
        deadline=payload.deadline,
    )

    background_tasks.add_task(
        dispatch_task_assignment_email,
        email_service,
        recipient_email=task.assignee.email,
        recipient_name=task.assignee.name,
        task_title=task.title,
        assigner_name=actor.name,
        deadline=task.deadline,
    )

    return {"message": "Task created successfully", "task": task}


@router.put("/{task_id}", response_model=TaskMutationEnvelope)
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    requested = payload.model_dump(exclude_unset=True)
    task = await TaskService(db).update_task(actor, task_id, requested)
    return {"message": "Task updated successfully", "task": task}


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    await TaskService(db).delete_task(actor, task_id)
    return {"message": "Task deleted successfully"}
