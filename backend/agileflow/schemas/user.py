from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from agileflow.models.user import UserRole


class UserSummary(BaseModel):
    """Related-user summary embedded in messages and user listings"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    role: UserRole


class UserContact(UserSummary):
    """Related-user summary embedded in tasks"""
    email: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: UserRole
    online_status: bool = False
    last_seen_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class UserWithCreator(UserResponse):
    creator: Optional[UserSummary] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        # Only runs for a name present in the body, so None here is an explicit null
        if v is None or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class OnlineStatusUpdate(BaseModel):
    online_status: bool


class UserEnvelope(BaseModel):
    user: UserWithCreator


class UserListEnvelope(BaseModel):
    users: List[UserWithCreator]


class UserMutationEnvelope(BaseModel):
    message: str
    user: UserWithCreator
