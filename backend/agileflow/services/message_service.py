"""
Message Service - community channel and private faculty messages

Community messages are open to every role. Private messages are limited
to HOD and Professor on both ends.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agileflow.core.config import settings
from agileflow.core.exceptions import (
    MessageNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
)
from agileflow.core.logging_config import logger
from agileflow.models.message import CommunityMessage, PrivateMessage
from agileflow.models.user import User
from agileflow.modules.access.policy import (
    Actor,
    can_mark_read,
    can_receive_private_message,
    can_use_private_messages,
)
from agileflow.modules.messaging.conversations import Conversation, derive_conversations
from agileflow.schemas.message import CommunityMessageResponse, PrivateMessageResponse
from agileflow.services.change_feed import ChangeFeed, ChangeType, change_feed


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None or limit < 1:
        return settings.COMMUNITY_MESSAGE_DEFAULT_LIMIT
    return min(limit, settings.COMMUNITY_MESSAGE_MAX_LIMIT)


class MessageService:

    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed

    # ========== Community ==========

    async def list_community_messages(self, limit: Optional[int] = None) -> List[CommunityMessage]:
        """Newest ``limit`` messages, returned oldest first"""
        result = await self.db.execute(
            select(CommunityMessage)
            .options(selectinload(CommunityMessage.user))
            .order_by(CommunityMessage.created_at.desc())
            .limit(clamp_limit(limit))
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def send_community_message(
        self, actor: Actor, body: str, client_ref: Optional[str] = None
    ) -> CommunityMessage:
        message = CommunityMessage(user_id=actor.id, message=body, client_ref=client_ref)
        self.db.add(message)
        await self.db.commit()

        result = await self.db.execute(
            select(CommunityMessage)
            .options(selectinload(CommunityMessage.user))
            .where(CommunityMessage.id == message.id)
            .execution_options(populate_existing=True)
        )
        message = result.scalar_one()
        self.feed.publish(
            "community_messages",
            ChangeType.INSERT,
            CommunityMessageResponse.model_validate(message).model_dump(mode="json"),
        )
        return message

    # ========== Private ==========

    def _require_private_access(self, actor: Actor) -> None:
        if not can_use_private_messages(actor):
            raise PermissionDeniedError("Access denied. Insufficient permissions.")

    def _private_query(self):
        return select(PrivateMessage).options(
            selectinload(PrivateMessage.sender),
            selectinload(PrivateMessage.receiver),
        )

    async def _load_private(self, message_id: str) -> Optional[PrivateMessage]:
        result = await self.db.execute(
            self._private_query()
            .where(PrivateMessage.id == message_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_private_messages(
        self, actor: Actor, other_user_id: Optional[str] = None
    ) -> List[PrivateMessage]:
        """Everything involving the actor, or only the thread with ``other_user_id``"""
        self._require_private_access(actor)

        if other_user_id:
            condition = or_(
                and_(PrivateMessage.sender_id == actor.id, PrivateMessage.receiver_id == other_user_id),
                and_(PrivateMessage.sender_id == other_user_id, PrivateMessage.receiver_id == actor.id),
            )
        else:
            condition = or_(PrivateMessage.sender_id == actor.id, PrivateMessage.receiver_id == actor.id)

        result = await self.db.execute(
            self._private_query().where(condition).order_by(PrivateMessage.created_at.asc())
        )
        return list(result.scalars().all())

    async def send_private_message(
        self,
        actor: Actor,
        receiver_id: str,
        body: str,
        client_ref: Optional[str] = None,
    ) -> PrivateMessage:
        self._require_private_access(actor)

        result = await self.db.execute(select(User).where(User.id == receiver_id))
        receiver = result.scalar_one_or_none()
        if not receiver:
            raise UserNotFoundError(receiver_id)
        if not can_receive_private_message(receiver.role):
            raise PermissionDeniedError("Can only message HOD or Professors")

        message = PrivateMessage(
            sender_id=actor.id,
            receiver_id=receiver.id,
            message=body,
            client_ref=client_ref,
        )
        self.db.add(message)
        await self.db.commit()

        message = await self._load_private(message.id)
        self.feed.publish("messages", ChangeType.INSERT, self.private_record(message))
        return message

    async def mark_as_read(self, actor: Actor, message_id: str) -> PrivateMessage:
        """Receiver-only; marking an already read message again is a no-op"""
        self._require_private_access(actor)

        message = await self._load_private(message_id)
        if not message:
            raise MessageNotFoundError(message_id)
        if not can_mark_read(actor, message):
            raise PermissionDeniedError("Access denied")

        if not message.read:
            message.read = True
            await self.db.commit()
            message = await self._load_private(message_id)
            self.feed.publish("messages", ChangeType.UPDATE, self.private_record(message))
        else:
            logger.debug(f"[Messages] {message_id} already read")
        return message

    async def unread_count(self, actor: Actor) -> int:
        self._require_private_access(actor)
        result = await self.db.execute(
            select(func.count())
            .select_from(PrivateMessage)
            .where(PrivateMessage.receiver_id == actor.id, PrivateMessage.read.is_(False))
        )
        return result.scalar() or 0

    async def conversations(self, actor: Actor) -> List[Conversation]:
        self._require_private_access(actor)
        result = await self.db.execute(
            self._private_query().where(
                or_(PrivateMessage.sender_id == actor.id, PrivateMessage.receiver_id == actor.id)
            )
        )
        return derive_conversations(actor.id, result.scalars().all())

    @staticmethod
    def private_record(message: PrivateMessage) -> Dict[str, Any]:
        return PrivateMessageResponse.model_validate(message).model_dump(mode="json")
