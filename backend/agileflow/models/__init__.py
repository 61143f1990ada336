# Re-export all models for convenient imports
from agileflow.models.auth_account import AuthAccount
from agileflow.models.user import User, UserRole
from agileflow.models.task import Task, TaskStatus
from agileflow.models.message import PrivateMessage, CommunityMessage

__all__ = [
    "AuthAccount",
    "User",
    "UserRole",
    "Task",
    "TaskStatus",
    "PrivateMessage",
    "CommunityMessage",
]
