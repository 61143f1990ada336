from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone

from agileflow.models.task import TaskStatus
from agileflow.schemas.user import UserContact


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    assigned_to: str = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    @field_validator("deadline")
    @classmethod
    def deadline_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class TaskUpdate(BaseModel):
    """
    Partial update. Only keys present in the request body are considered,
    so ``exclude_unset`` tells "not sent" apart from "sent as null".
    """
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    status: Optional[str] = None

    @field_validator("deadline")
    @classmethod
    def deadline_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    assigned_by: str
    assigned_to: str
    status: TaskStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    assigner: Optional[UserContact] = None
    assignee: Optional[UserContact] = None


class TaskStatsResponse(BaseModel):
    total: int
    pending: int
    inProgress: int
    completed: int
    assigned: int
    received: int


class TaskEnvelope(BaseModel):
    task: TaskResponse


class TaskListEnvelope(BaseModel):
    tasks: List[TaskResponse]


class TaskMutationEnvelope(BaseModel):
    message: str
    task: TaskResponse


class TaskStatsEnvelope(BaseModel):
    stats: TaskStatsResponse
