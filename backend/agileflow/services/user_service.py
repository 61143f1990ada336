"""
User Service - department member profiles

Profiles are created together with an identity account. If the profile
insert fails the account is removed again so no orphan login remains.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agileflow.core.exceptions import (
    PermissionDeniedError,
    StorageError,
    UserNotFoundError,
    ValidationError,
)
from agileflow.core.logging_config import logger
from agileflow.models.user import User, UserRole
from agileflow.modules.access.policy import (
    Actor,
    can_create_user,
    can_delete_user,
    can_update_user,
)
from agileflow.schemas.user import UserWithCreator
from agileflow.services.change_feed import ChangeFeed, ChangeType, change_feed
from agileflow.services.identity_service import IdentityService


def user_record(user: User) -> Dict[str, Any]:
    return UserWithCreator.model_validate(user).model_dump(mode="json")


class UserService:
    """Profile reads and writes, with policy checks on every mutation"""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed
        self.identity = IdentityService(db)

    def _query(self):
        return select(User).options(selectinload(User.creator))

    async def get_user(self, user_id: str) -> User:
        result = await self.db.execute(
            self._query().where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def find_user(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def list_users(self) -> List[User]:
        """Department directory, newest first"""
        result = await self.db.execute(self._query().order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def list_users_by_role(self, role: UserRole) -> List[User]:
        result = await self.db.execute(
            self._query().where(User.role == UserRole(role)).order_by(User.name)
        )
        return list(result.scalars().all())

    async def create_profile(
        self,
        email: str,
        password: str,
        name: str,
        role: UserRole,
        created_by: Optional[str] = None,
    ) -> User:
        """Create identity account plus profile; undo the account if the profile fails"""
        role = UserRole(role)
        email = email.lower()
        account_id = await self.identity.create_account(
            email, password, {"name": name, "role": role.value}
        )

        try:
            user = User(id=account_id, email=email, name=name, role=role, created_by=created_by)
            self.db.add(user)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, context="create_profile", account_id=account_id)
            await self.identity.delete_account(account_id)
            raise StorageError("Failed to create user profile", operation="insert")

        user = await self.get_user(account_id)
        self.feed.publish("users", ChangeType.INSERT, user_record(user))
        return user

    async def create_user(self, actor: Actor, email: str, password: str, name: str, role: UserRole) -> User:
        if not can_create_user(actor, role):
            raise PermissionDeniedError("Professors can only create Students and Supporting Staff")

        user = await self.create_profile(email, password, name, role, created_by=actor.id)
        logger.info(
            f"[Users] {actor.role.value} {actor.id} created {UserRole(role).value} {user.id}",
            extra={"event_type": "user_created", "target_user_id": user.id},
        )
        return user

    async def update_user(self, actor: Actor, user_id: str, changes: Mapping[str, Any]) -> User:
        """Fetch first, then decide, then write"""
        user = await self.get_user(user_id)

        if "role" in changes and changes["role"] is None:
            raise ValidationError("Invalid role", field="role")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Name cannot be empty", field="name")
        if not can_update_user(actor, user.id, changes.keys()):
            raise PermissionDeniedError("Access denied")
        if (
            user.id == actor.id
            and "role" in changes
            and UserRole(changes["role"]) != UserRole(user.role)
        ):
            raise ValidationError("You cannot change your own role", field="role")

        if "name" in changes:
            user.name = changes["name"]
        if "role" in changes:
            user.role = UserRole(changes["role"])
        user.updated_at = datetime.utcnow()
        await self.db.commit()

        user = await self.get_user(user_id)
        self.feed.publish("users", ChangeType.UPDATE, user_record(user))
        return user

    async def set_online_status(self, actor: Actor, online_status: bool) -> User:
        """Heartbeat for the acting user"""
        user = await self.get_user(actor.id)
        user.online_status = online_status
        user.last_seen_at = datetime.utcnow()
        await self.db.commit()

        user = await self.get_user(actor.id)
        self.feed.publish("users", ChangeType.UPDATE, user_record(user))
        return user

    async def delete_user(self, actor: Actor, user_id: str) -> None:
        if not can_delete_user(actor):
            raise PermissionDeniedError("Access denied. HOD only.")

        user = await self.find_user(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        if user.id == actor.id:
            raise ValidationError("You cannot delete your own account")

        record = {"id": user.id, "email": user.email, "name": user.name, "role": UserRole(user.role).value}
        await self.identity.delete_account(user_id)

        logger.info(
            f"[Users] HOD {actor.id} deleted user {user_id}",
            extra={"event_type": "user_deleted", "target_user_id": user_id},
        )
        self.feed.publish("users", ChangeType.DELETE, record)
