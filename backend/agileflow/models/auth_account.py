from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime

from agileflow.core.database import Base
from agileflow.core.types import GUID, generate_uuid


class AuthAccount(Base):
    """Identity provider record: credentials plus signup metadata"""
    __tablename__ = "auth_accounts"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    account_metadata = Column(JSON, default=dict, nullable=False)  # {"name": ..., "role": ...}

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_sign_in_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AuthAccount {self.email}>"
