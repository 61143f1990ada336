from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from agileflow.core.database import get_db
from agileflow.modules.access.policy import Actor
from agileflow.modules.auth.dependencies import get_current_actor, require_private_messaging
from agileflow.schemas.message import (
    CommunityMessageCreate,
    PrivateMessageCreate,
    CommunityMessageListEnvelope,
    CommunityMessageSentEnvelope,
    PrivateMessageListEnvelope,
    PrivateMessageSentEnvelope,
    MarkReadEnvelope,
    UnreadCountEnvelope,
    ConversationListEnvelope,
)
from agileflow.services.message_service import MessageService


router = APIRouter()


# ========== Community ==========

@router.get("/community", response_model=CommunityMessageListEnvelope)
async def get_community_messages(
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Newest messages, oldest first"""
    return {"messages": await MessageService(db).list_community_messages(limit)}


@router.post("/community", response_model=CommunityMessageSentEnvelope, status_code=status.HTTP_201_CREATED)
async def send_community_message(
    payload: CommunityMessageCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    message = await MessageService(db).send_community_message(
        actor, payload.message, client_ref=payload.client_ref
    )
    return {"message": "Message sent successfully", "data": message}


# ========== Private (HOD and Professor) ==========

@router.get("/private", response_model=PrivateMessageListEnvelope)
async def get_private_messages(
    other_user_id: Optional[str] = Query(None, alias="otherUserId"),
    actor: Actor = Depends(require_private_messaging),
    db: AsyncSession = Depends(get_db)
):
    messages = await MessageService(db).list_private_messages(actor, other_user_id)
    return {"messages": messages}


@router.post("/private", response_model=PrivateMessageSentEnvelope, status_code=status.HTTP_201_CREATED)
async def send_private_message(
    payload: PrivateMessageCreate,
    actor: Actor = Depends(require_private_messaging),
    db: AsyncSession = Depends(get_db)
):
    message = await MessageService(db).send_private_message(
        actor,
        receiver_id=payload.receiver_id,
        body=payload.message,
        client_ref=payload.client_ref,
    )
    return {"message": "Message sent successfully", "data": message}


@router.get("/private/unread-count", response_model=UnreadCountEnvelope)
async def get_unread_count(
    actor: Actor = Depends(require_private_messaging),
    db: AsyncSession = Depends(get_db)
):
    return {"unreadCount": await MessageService(db).unread_count(actor)}


@router.get("/private/conversations", response_model=ConversationListEnvelope)
async def get_conversations(
    actor: Actor = Depends(require_private_messaging),
    db: AsyncSession = Depends(get_db)
):
    conversations = await MessageService(db).conversations(actor)
    return {"conversations": [c.to_dict() for c in conversations]}


@router.patch("/private/{message_id}/read", response_model=MarkReadEnvelope)
async def mark_message_as_read(
    message_id: str,
    actor: Actor = Depends(require_private_messaging),
    db: AsyncSession = Depends(get_db)
):
    return {"message": await MessageService(db).mark_as_read(actor, message_id)}
