"""
Agile Flow - Authorization Policy
=================================

Single place where role and relation decide what an actor may do.
Every rule is a pure function over an explicit ``Actor``; nothing here
touches the database.
"""

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, FrozenSet

from agileflow.models.user import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, built from the validated token and stored profile"""
    id: str
    role: UserRole
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class TaskParties:
    """Just the relation columns of a task, for records that are not ORM rows"""
    assigned_by: str
    assigned_to: str

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "TaskParties":
        return cls(assigned_by=record["assigned_by"], assigned_to=record["assigned_to"])


class Capability(str, enum.Enum):
    CREATE_USERS = "create_users"
    CREATE_PRIVILEGED_USERS = "create_privileged_users"
    DELETE_USERS = "delete_users"
    UPDATE_ANY_USER = "update_any_user"
    ASSIGN_TASKS = "assign_tasks"
    ASSIGN_TO_STAFF_ONLY = "assign_to_staff_only"
    VIEW_ALL_TASKS = "view_all_tasks"
    MANAGE_ALL_TASKS = "manage_all_tasks"
    PRIVATE_MESSAGING = "private_messaging"
    RECEIVE_PRIVATE_MESSAGES = "receive_private_messages"


class TaskScope(str, enum.Enum):
    """Which tasks a role sees when listing"""
    ALL = "all"
    ASSIGNED_BY_OR_TO = "assigned_by_or_to"
    ASSIGNED_TO = "assigned_to"


ROLE_CAPABILITIES: Mapping[UserRole, FrozenSet[Capability]] = {
    UserRole.HOD: frozenset({
        Capability.CREATE_USERS,
        Capability.CREATE_PRIVILEGED_USERS,
        Capability.DELETE_USERS,
        Capability.UPDATE_ANY_USER,
        Capability.ASSIGN_TASKS,
        Capability.VIEW_ALL_TASKS,
        Capability.MANAGE_ALL_TASKS,
        Capability.PRIVATE_MESSAGING,
        Capability.RECEIVE_PRIVATE_MESSAGES,
    }),
    UserRole.PROFESSOR: frozenset({
        Capability.CREATE_USERS,
        Capability.ASSIGN_TASKS,
        Capability.ASSIGN_TO_STAFF_ONLY,
        Capability.PRIVATE_MESSAGING,
        Capability.RECEIVE_PRIVATE_MESSAGES,
    }),
    UserRole.SUPPORTING_STAFF: frozenset(),
    UserRole.STUDENT: frozenset(),
}

_missing_roles = set(UserRole) - set(ROLE_CAPABILITIES)
if _missing_roles:
    raise RuntimeError(
        f"ROLE_CAPABILITIES has no entry for: {', '.join(sorted(r.value for r in _missing_roles))}"
    )

PRIVILEGED_ROLES = frozenset({UserRole.HOD, UserRole.PROFESSOR})
TASK_CONTENT_FIELDS = frozenset({"title", "description", "deadline", "status"})
STATUS_ONLY = frozenset({"status"})
SELF_EDITABLE_USER_FIELDS = frozenset({"name"})
ADMIN_EDITABLE_USER_FIELDS = frozenset({"name", "role"})


def capabilities_for(role: UserRole) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES[UserRole(role)]


def has_capability(actor: Actor, capability: Capability) -> bool:
    return capability in capabilities_for(actor.role)


# ============================================
# Users
# ============================================

def can_create_user(actor: Actor, target_role: UserRole) -> bool:
    """HOD creates anyone; Professor creates only Students and Supporting Staff"""
    if not has_capability(actor, Capability.CREATE_USERS):
        return False
    if UserRole(target_role) in PRIVILEGED_ROLES:
        return has_capability(actor, Capability.CREATE_PRIVILEGED_USERS)
    return True


def can_delete_user(actor: Actor) -> bool:
    return has_capability(actor, Capability.DELETE_USERS)


def can_update_user(actor: Actor, target_id: str, fields: Iterable[str]) -> bool:
    """
    Anyone may rename themselves; only HOD may touch other profiles or roles.
    An empty field set is allowed wherever the target itself is editable.
    """
    requested = frozenset(fields)
    if has_capability(actor, Capability.UPDATE_ANY_USER):
        return requested <= ADMIN_EDITABLE_USER_FIELDS
    if actor.id == target_id:
        return requested <= SELF_EDITABLE_USER_FIELDS
    return False


def can_list_users(actor: Actor) -> bool:
    # Department directory: every authenticated role sees every profile
    return True


# ============================================
# Private messaging
# ============================================

def can_use_private_messages(actor: Actor) -> bool:
    return has_capability(actor, Capability.PRIVATE_MESSAGING)


def can_receive_private_message(receiver_role: UserRole) -> bool:
    return Capability.RECEIVE_PRIVATE_MESSAGES in capabilities_for(receiver_role)


def can_mark_read(actor: Actor, message: Any) -> bool:
    return actor.id == message.receiver_id


def can_view_private_message(actor: Actor, message: Any) -> bool:
    return actor.id in (message.sender_id, message.receiver_id)


# ============================================
# Tasks
# ============================================

def task_scope(actor: Actor) -> TaskScope:
    if has_capability(actor, Capability.VIEW_ALL_TASKS):
        return TaskScope.ALL
    if has_capability(actor, Capability.ASSIGN_TASKS):
        return TaskScope.ASSIGNED_BY_OR_TO
    return TaskScope.ASSIGNED_TO


def can_view_task(actor: Actor, task: Any) -> bool:
    """``task`` is a Task row or TaskParties"""
    scope = task_scope(actor)
    if scope == TaskScope.ALL:
        return True
    if scope == TaskScope.ASSIGNED_BY_OR_TO:
        return actor.id in (task.assigned_by, task.assigned_to)
    return actor.id == task.assigned_to


def editable_task_fields(actor: Actor, task: Any) -> FrozenSet[str]:
    """
    Fields the actor may change on this task.

    Content rights need both ASSIGN_TASKS and being the assigner, so a
    Student who somehow assigned a task still only gets status as assignee.
    On self-assignment the assigner rights win.
    """
    if has_capability(actor, Capability.MANAGE_ALL_TASKS):
        return TASK_CONTENT_FIELDS
    if has_capability(actor, Capability.ASSIGN_TASKS) and task.assigned_by == actor.id:
        return TASK_CONTENT_FIELDS
    if task.assigned_to == actor.id:
        return STATUS_ONLY
    return frozenset()


def can_delete_task(actor: Actor, task: Any) -> bool:
    return has_capability(actor, Capability.MANAGE_ALL_TASKS) or task.assigned_by == actor.id
