# Authentication module

from agileflow.modules.auth.dependencies import (
    get_current_account_id,
    get_current_user,
    get_current_actor,
    require_capability,
    require_user_creation,
    require_user_deletion,
    require_task_assignment,
    require_private_messaging,
)

__all__ = [
    "get_current_account_id",
    "get_current_user",
    "get_current_actor",
    "require_capability",
    "require_user_creation",
    "require_user_deletion",
    "require_task_assignment",
    "require_private_messaging",
]
