from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from agileflow.core.database import Base
from agileflow.core.types import GUID, generate_uuid
from agileflow.models.user import _enum_values


class TaskStatus(str, enum.Enum):
    """Task progress states"""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class Task(Base):
    """Unit of work assigned from one user to another"""
    __tablename__ = "tasks"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    deadline = Column(DateTime, nullable=True)

    assigned_by = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(
        SQLEnum(TaskStatus, values_callable=_enum_values, native_enum=False, length=32),
        default=TaskStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assigner = relationship("User", foreign_keys=[assigned_by])
    assignee = relationship("User", foreign_keys=[assigned_to])

    def __repr__(self):
        return f"<Task {self.title!r} [{self.status}]>"
