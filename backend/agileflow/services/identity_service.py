"""
Identity Service - credential store and bearer tokens

Owns the auth_accounts table. A profile row in ``users`` shares the
account id and is removed with it through ON DELETE CASCADE.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from agileflow.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidTokenError,
)
from agileflow.core.logging_config import logger
from agileflow.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from agileflow.models.auth_account import AuthAccount


class IdentityService:
    """Create, authenticate and delete identity accounts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_account(self, account_id: str) -> Optional[AuthAccount]:
        result = await self.db.execute(select(AuthAccount).where(AuthAccount.id == account_id))
        return result.scalar_one_or_none()

    async def get_account_by_email(self, email: str) -> Optional[AuthAccount]:
        result = await self.db.execute(
            select(AuthAccount).where(AuthAccount.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def create_account(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        """Create and commit an account; returns its id"""
        email = email.lower()
        if await self.get_account_by_email(email):
            raise ConflictError("Email already registered")

        account = AuthAccount(
            email=email,
            hashed_password=get_password_hash(password),
            account_metadata=dict(metadata),
        )
        self.db.add(account)
        await self.db.commit()

        logger.info(f"[Identity] Created account {account.id}", extra={"account_id": account.id})
        return account.id

    async def authenticate(self, email: str, password: str) -> AuthAccount:
        account = await self.get_account_by_email(email)
        if not account or not verify_password(password, account.hashed_password):
            raise AuthenticationError("Invalid credentials")

        account.last_sign_in_at = datetime.utcnow()
        await self.db.commit()
        return account

    async def delete_account(self, account_id: str) -> bool:
        """Remove the account; the profile and everything hanging off it cascade"""
        result = await self.db.execute(delete(AuthAccount).where(AuthAccount.id == account_id))
        await self.db.commit()
        self.db.expire_all()

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"[Identity] Deleted account {account_id}", extra={"account_id": account_id})
        return deleted

    @staticmethod
    def issue_tokens(account_id: str, email: str, role: str) -> Dict[str, str]:
        claims = {"sub": account_id, "email": email, "role": role}
        return {
            "access_token": create_access_token(claims),
            "refresh_token": create_refresh_token({"sub": account_id}),
            "token_type": "bearer",
        }

    @staticmethod
    def validate_bearer_token(token: str) -> str:
        """Return the account id behind an access token, or raise AuthenticationError"""
        payload = decode_token(token, expected_type="access")
        return payload["sub"]

    @staticmethod
    def validate_refresh_token(token: str) -> str:
        payload = decode_token(token, expected_type="refresh")
        account_id = payload.get("sub")
        if not account_id:
            raise InvalidTokenError()
        return account_id
