"""
Realtime Change Feed WebSocket

Pushes committed row changes to connected clients.

Connection URL: WS /api/realtime/ws?token=<jwt>&table=<table>&event=<INSERT|UPDATE|DELETE|*>

Server messages:
    {"table": "tasks", "event": "UPDATE", "record": {...}, "timestamp": "..."}
    "pong" in reply to a "ping" text frame

Close codes:
    4001 - missing, invalid or expired token
    4004 - unknown table or event
"""

import asyncio
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agileflow.core.database import get_db
from agileflow.core.exceptions import AuthenticationError
from agileflow.core.logging_config import logger
from agileflow.models.user import User, UserRole
from agileflow.modules.access.policy import (
    Actor,
    TaskParties,
    can_use_private_messages,
    can_view_task,
)
from agileflow.services.change_feed import ChangeEvent, ChangeType, FEED_TABLES, WILDCARD, change_feed
from agileflow.services.identity_service import IdentityService


router = APIRouter()


def event_visible_to(actor: Actor, change: ChangeEvent) -> bool:
    """Apply the same row visibility the REST reads use"""
    record = change.record
    if change.table == "messages":
        return can_use_private_messages(actor) and actor.id in (
            record.get("sender_id"),
            record.get("receiver_id"),
        )
    if change.table == "tasks":
        return can_view_task(actor, TaskParties.from_record(record))
    return True


async def get_actor_from_token(token: str, db: AsyncSession) -> Actor:
    account_id = IdentityService.validate_bearer_token(token)
    result = await db.execute(select(User).where(User.id == account_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User profile not found")
    return Actor(id=user.id, role=UserRole(user.role), name=user.name, email=user.email)


async def _forward(websocket: WebSocket, actor: Actor, subscription) -> None:
    async for change in subscription:
        if event_visible_to(actor, change):
            await websocket.send_text(change.to_json())


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    token: str = Query(""),
    table: str = Query(...),
    event: str = Query(WILDCARD),
    db: AsyncSession = Depends(get_db),
):
    try:
        actor = await get_actor_from_token(token, db)
    except AuthenticationError as e:
        await websocket.close(code=4001, reason=e.message)
        return

    if table not in FEED_TABLES or (event != WILDCARD and event not in ChangeType.__members__):
        await websocket.close(code=4004, reason="Unknown table or event")
        return

    await websocket.accept()
    subscription = change_feed.subscribe(table, event)
    forwarder = asyncio.create_task(_forward(websocket, actor, subscription))
    logger.info(f"[Realtime] {actor.id} subscribed to {table}/{event}")

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"[Realtime] {actor.id} disconnected from {table}/{event}")
    finally:
        forwarder.cancel()
        try:
            await forwarder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.log_error_with_context(e, context="realtime_forward", table=table, event=event)
        change_feed.unsubscribe(subscription)
