from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Awaitable, Callable, Optional

from agileflow.core.database import get_db
from agileflow.core.logging_config import set_user_id
from agileflow.models.user import User, UserRole
from agileflow.modules.access.policy import Actor, Capability, has_capability
from agileflow.services.identity_service import IdentityService

security = HTTPBearer(auto_error=False)


async def get_current_account_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Validate the bearer token and return the identity account id"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account_id = IdentityService.validate_bearer_token(credentials.credentials)
    set_user_id(account_id)
    return account_id


async def get_current_user(
    account_id: str = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Load the profile behind a valid token"""
    result = await db.execute(select(User).where(User.id == account_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile not found"
        )
    return user


async def get_current_actor(
    user: User = Depends(get_current_user)
) -> Actor:
    """Explicit actor context passed into every policy decision"""
    return Actor(id=user.id, role=UserRole(user.role), name=user.name, email=user.email)


def require_capability(
    capability: Capability,
    detail: str = "Access denied. Insufficient permissions.",
) -> Callable[..., Awaitable[Actor]]:
    """Dependency factory: 403 unless the actor's role carries ``capability``"""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not has_capability(actor, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=detail
            )
        return actor

    return dependency


require_user_creation = require_capability(Capability.CREATE_USERS)
require_user_deletion = require_capability(Capability.DELETE_USERS, "Access denied. HOD only.")
require_task_assignment = require_capability(Capability.ASSIGN_TASKS)
require_private_messaging = require_capability(Capability.PRIVATE_MESSAGING)
