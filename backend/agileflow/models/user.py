from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from agileflow.core.database import Base
from agileflow.core.types import GUID


class UserRole(str, enum.Enum):
    """Department roles"""
    HOD = "HOD"
    PROFESSOR = "Professor"
    SUPPORTING_STAFF = "Supporting Staff"
    STUDENT = "Student"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    """Department member profile, keyed by the identity account id"""
    __tablename__ = "users"

    id = Column(GUID, ForeignKey("auth_accounts.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(
        SQLEnum(UserRole, values_callable=_enum_values, native_enum=False, length=32),
        nullable=False,
        index=True,
    )

    online_status = Column(Boolean, default=False, nullable=False)
    last_seen_at = Column(DateTime, nullable=True)

    # Audit trail only; never consulted for authorization
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    creator = relationship("User", remote_side="User.id", foreign_keys=[created_by])

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
