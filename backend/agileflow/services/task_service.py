"""
Task Service - assignment, role-scoped listing, updates and stats

Every mutation reads the current row first and asks the policy with it;
nothing is written before the decision.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agileflow.core.exceptions import (
    PermissionDeniedError,
    TaskNotFoundError,
    UserNotFoundError,
)
from agileflow.core.logging_config import logger
from agileflow.models.task import Task, TaskStatus
from agileflow.models.user import User
from agileflow.modules.access.policy import (
    Actor,
    TaskScope,
    can_delete_task,
    can_view_task,
    task_scope,
)
from agileflow.modules.tasks.lifecycle import (
    INITIAL_STATUS,
    TaskStats,
    compute_task_stats,
    plan_task_update,
    validate_assignment,
)
from agileflow.schemas.task import TaskResponse
from agileflow.services.change_feed import ChangeFeed, ChangeType, change_feed


def task_record(task: Task) -> Dict[str, Any]:
    return TaskResponse.model_validate(task).model_dump(mode="json")


class TaskService:

    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed

    def _query(self):
        return select(Task).options(
            selectinload(Task.assigner),
            selectinload(Task.assignee),
        )

    def _scoped(self, query, actor: Actor):
        scope = task_scope(actor)
        if scope == TaskScope.ASSIGNED_TO:
            return query.where(Task.assigned_to == actor.id)
        if scope == TaskScope.ASSIGNED_BY_OR_TO:
            return query.where(or_(Task.assigned_by == actor.id, Task.assigned_to == actor.id))
        return query

    async def _load(self, task_id: str) -> Optional[Task]:
        result = await self.db.execute(
            self._query().where(Task.id == task_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_task(self, actor: Actor, task_id: str) -> Task:
        task = await self._load(task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        if not can_view_task(actor, task):
            raise PermissionDeniedError("Access denied")
        return task

    async def list_tasks(
        self,
        actor: Actor,
        status: Optional[TaskStatus] = None,
        assigned_to: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> List[Task]:
        """Role-scoped tasks, with optional equality filters ANDed on top"""
        query = self._scoped(self._query(), actor)
        if status is not None:
            query = query.where(Task.status == TaskStatus(status))
        if assigned_to:
            query = query.where(Task.assigned_to == assigned_to)
        if assigned_by:
            query = query.where(Task.assigned_by == assigned_by)

        result = await self.db.execute(query.order_by(Task.created_at.desc()))
        return list(result.scalars().all())

    async def create_task(
        self,
        actor: Actor,
        title: str,
        assigned_to: str,
        description: Optional[str] = None,
        deadline: Optional[datetime] = None,
    ) -> Task:
        result = await self.db.execute(select(User).where(User.id == assigned_to))
        assignee = result.scalar_one_or_none()
        if not assignee:
            raise UserNotFoundError(assigned_to)

        validate_assignment(actor, assignee.role)

        task = Task(
            title=title,
            description=description,
            deadline=deadline,
            assigned_by=actor.id,
            assigned_to=assignee.id,
            status=INITIAL_STATUS,
        )
        self.db.add(task)
        await self.db.commit()

        task = await self._load(task.id)
        logger.info(
            f"[Tasks] {actor.id} assigned task {task.id} to {assignee.id}",
            extra={"event_type": "task_created", "task_id": task.id},
        )
        self.feed.publish("tasks", ChangeType.INSERT, task_record(task))
        return task

    async def update_task(self, actor: Actor, task_id: str, requested: Mapping[str, Any]) -> Task:
        task = await self._load(task_id)
        if not task:
            raise TaskNotFoundError(task_id)

        changes = plan_task_update(actor, task, requested)
        for field, value in changes.items():
            setattr(task, field, value)
        task.updated_at = datetime.utcnow()
        await self.db.commit()

        task = await self._load(task_id)
        self.feed.publish("tasks", ChangeType.UPDATE, task_record(task))
        return task

    async def delete_task(self, actor: Actor, task_id: str) -> None:
        task = await self._load(task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        if not can_delete_task(actor, task):
            raise PermissionDeniedError("Only task creator or HOD can delete tasks")

        record = task_record(task)
        await self.db.execute(delete(Task).where(Task.id == task_id))
        await self.db.commit()
        self.db.expunge(task)

        logger.info(f"[Tasks] {actor.id} deleted task {task_id}", extra={"event_type": "task_deleted", "task_id": task_id})
        self.feed.publish("tasks", ChangeType.DELETE, record)

    async def get_stats(self, actor: Actor) -> TaskStats:
        query = self._scoped(select(Task), actor)
        result = await self.db.execute(query)
        return compute_task_stats(actor.id, result.scalars().all())
