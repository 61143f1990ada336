"""
Agile Flow - Task Lifecycle
===========================

Assignment rules, the per-actor update plan and the statistics fold.
Status may move between any two states; Completed tasks can be reopened.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, FrozenSet, Iterable, Mapping

from agileflow.core.exceptions import PermissionDeniedError, ValidationError
from agileflow.models.task import TaskStatus
from agileflow.models.user import UserRole
from agileflow.modules.access.policy import (
    Actor,
    Capability,
    can_view_task,
    capabilities_for,
    editable_task_fields,
)


INITIAL_STATUS = TaskStatus.PENDING

TASK_TRANSITIONS: Mapping[TaskStatus, FrozenSet[TaskStatus]] = {
    state: frozenset(TaskStatus) - {state} for state in TaskStatus
}

STAFF_ASSIGNABLE_ROLES = frozenset({UserRole.STUDENT, UserRole.SUPPORTING_STAFF})


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    current, target = TaskStatus(current), TaskStatus(target)
    return current == target or target in TASK_TRANSITIONS[current]


def validate_assignment(actor: Actor, assignee_role: UserRole) -> None:
    """Raise PermissionDeniedError unless ``actor`` may assign to ``assignee_role``"""
    capabilities = capabilities_for(actor.role)
    if Capability.ASSIGN_TASKS not in capabilities:
        raise PermissionDeniedError("Access denied")
    if (
        Capability.ASSIGN_TO_STAFF_ONLY in capabilities
        and UserRole(assignee_role) not in STAFF_ASSIGNABLE_ROLES
    ):
        raise PermissionDeniedError(
            "Professors can only assign tasks to Students and Supporting Staff"
        )


def parse_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}", field="status")


def plan_task_update(actor: Actor, task: Any, requested: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Decide which of the requested changes the actor may apply to an
    already-fetched task.

    Raises PermissionDeniedError when the actor has no edit rights at all,
    or asks for a field outside its editable set. Returns the changes to write.
    """
    allowed = editable_task_fields(actor, task)
    if not allowed or not can_view_task(actor, task):
        raise PermissionDeniedError("Access denied")

    forbidden = set(requested) - allowed
    if forbidden:
        raise PermissionDeniedError("You can only update task status")

    changes = dict(requested)
    if "status" in changes:
        target = parse_status(changes["status"])
        if not can_transition(task.status, target):
            raise ValidationError(f"Cannot move task from {task.status} to {target.value}", field="status")
        changes["status"] = target
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("Title cannot be empty", field="title")
    return changes


@dataclass(frozen=True)
class TaskStats:
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    assigned: int = 0
    received: int = 0

    def to_dict(self) -> Dict[str, int]:
        data = asdict(self)
        data["inProgress"] = data.pop("in_progress")
        return data


def compute_task_stats(actor_id: str, tasks: Iterable[Any]) -> TaskStats:
    """Single pass over the role-filtered task set"""
    counts = {
        "total": 0,
        "pending": 0,
        "in_progress": 0,
        "completed": 0,
        "assigned": 0,
        "received": 0,
    }
    status_keys = {
        TaskStatus.PENDING: "pending",
        TaskStatus.IN_PROGRESS: "in_progress",
        TaskStatus.COMPLETED: "completed",
    }
    for task in tasks:
        counts["total"] += 1
        counts[status_keys[TaskStatus(task.status)]] += 1
        if task.assigned_by == actor_id:
            counts["assigned"] += 1
        if task.assigned_to == actor_id:
            counts["received"] += 1
    return TaskStats(**counts)
