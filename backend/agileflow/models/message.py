from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from agileflow.core.database import Base
from agileflow.core.types import GUID, generate_uuid


class PrivateMessage(Base):
    """Direct message between two faculty members"""
    __tablename__ = "messages"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    sender_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)

    # Correlation id chosen by the sending client for optimistic rendering
    client_ref = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    def __repr__(self):
        return f"<PrivateMessage {self.sender_id} -> {self.receiver_id}>"


class CommunityMessage(Base):
    """Message on the department-wide channel"""
    __tablename__ = "community_messages"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    client_ref = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User")

    def __repr__(self):
        return f"<CommunityMessage {self.user_id}>"
