from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from agileflow.core.database import get_db
from agileflow.models.user import UserRole
from agileflow.modules.access.policy import Actor
from agileflow.modules.auth.dependencies import get_current_actor, require_user_creation, require_user_deletion
from agileflow.schemas.user import (
    UserCreate,
    UserUpdate,
    OnlineStatusUpdate,
    UserEnvelope,
    UserListEnvelope,
    UserMutationEnvelope,
)
from agileflow.services.user_service import UserService


router = APIRouter()


@router.get("", response_model=UserListEnvelope)
async def list_users(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Department directory, newest first"""
    return {"users": await UserService(db).list_users()}


@router.patch("/status/online", response_model=UserEnvelope)
async def update_online_status(
    payload: OnlineStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Heartbeat for the calling user"""
    user = await UserService(db).set_online_status(actor, payload.online_status)
    return {"user": user}


@router.get("/role/{role}", response_model=UserListEnvelope)
async def list_users_by_role(
    role: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    return {"users": await UserService(db).list_users_by_role(user_role)}


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return {"user": await UserService(db).get_user(user_id)}


@router.post("", response_model=UserMutationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    actor: Actor = Depends(require_user_creation),
    db: AsyncSession = Depends(get_db)
):
    """HOD creates any role; Professor creates Students and Supporting Staff"""
    user = await UserService(db).create_user(
        actor,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
    )
    return {"message": "User created successfully", "user": user}


@router.put("/{user_id}", response_model=UserMutationEnvelope)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    user = await UserService(db).update_user(actor, user_id, changes)
    return {"message": "User updated successfully", "user": user}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    actor: Actor = Depends(require_user_deletion),
    db: AsyncSession = Depends(get_db)
):
    """Removes the identity account; profile, tasks and messages cascade"""
    await UserService(db).delete_user(actor, user_id)
    return {"message": "User deleted successfully"}
