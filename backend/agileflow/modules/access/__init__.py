# Authorization policy

from agileflow.modules.access.policy import (
    Actor,
    Capability,
    TaskParties,
    TaskScope,
    ROLE_CAPABILITIES,
    capabilities_for,
    can_create_user,
    can_delete_user,
    can_update_user,
    can_list_users,
    can_use_private_messages,
    can_receive_private_message,
    can_mark_read,
    can_view_private_message,
    task_scope,
    can_view_task,
    editable_task_fields,
    can_delete_task,
)

__all__ = [
    "Actor",
    "Capability",
    "TaskParties",
    "TaskScope",
    "ROLE_CAPABILITIES",
    "capabilities_for",
    "can_create_user",
    "can_delete_user",
    "can_update_user",
    "can_list_users",
    "can_use_private_messages",
    "can_receive_private_message",
    "can_mark_read",
    "can_view_private_message",
    "task_scope",
    "can_view_task",
    "editable_task_fields",
    "can_delete_task",
]
