"""
Change Feed - in-process pub/sub of committed row changes

Services publish after each commit; the realtime websocket subscribes per
(table, event) and forwards what the connected actor may see.

    feed = ChangeFeed()
    sub = feed.subscribe("messages", "INSERT")
    async for event in sub:
        ...
    feed.unsubscribe(sub)

Publishing never blocks: a subscriber whose queue is full loses the event.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from agileflow.core.config import settings
from agileflow.core.logging_config import logger


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


WILDCARD = "*"

FEED_TABLES = frozenset({"users", "tasks", "messages", "community_messages"})


@dataclass
class ChangeEvent:
    """A committed change to one row"""
    table: str
    event: ChangeType
    record: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "event": self.event.value,
            "record": self.record,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class Subscription:
    """Async iterator over events matching one (table, event) filter"""

    def __init__(self, table: str, event: str = WILDCARD, max_size: int = 100):
        self.table = table
        self.event = event
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self.dropped = 0

    def matches(self, change: ChangeEvent) -> bool:
        if self.table != change.table:
            return False
        return self.event == WILDCARD or self.event == change.event.value

    def offer(self, change: ChangeEvent) -> bool:
        try:
            self.queue.put_nowait(change)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"[ChangeFeed] Queue full for {self.table}/{self.event}, dropping {change.event.value}",
                extra={"event_type": "change_feed_drop", "table": change.table},
            )
            return False

    async def get(self, timeout: Optional[float] = None) -> ChangeEvent:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.queue.get()


class ChangeFeed:
    """Fan-out of ChangeEvents to bounded subscriber queues"""

    def __init__(self, max_queue_size: int = 100):
        self._subscriptions: List[Subscription] = []
        self._max_queue_size = max_queue_size
        self._event_count = 0

    def subscribe(self, table: str, event: str = WILDCARD) -> Subscription:
        if table not in FEED_TABLES:
            raise ValueError(f"Unknown table: {table}")
        if event != WILDCARD:
            event = ChangeType(event).value
        subscription = Subscription(table, event, max_size=self._max_queue_size)
        self._subscriptions.append(subscription)
        logger.debug(f"[ChangeFeed] Subscribed to {table}/{event}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(f"[ChangeFeed] Unsubscribed from {subscription.table}/{subscription.event}")

    def publish(self, table: str, event: ChangeType, record: Dict[str, Any]) -> int:
        """Deliver to every matching subscriber; returns how many accepted it"""
        change = ChangeEvent(table=table, event=ChangeType(event), record=record)
        self._event_count += 1
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(change) and subscription.offer(change):
                delivered += 1
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_events": self._event_count,
            "subscribers": len(self._subscriptions),
            "dropped": sum(s.dropped for s in self._subscriptions),
        }


change_feed = ChangeFeed(max_queue_size=settings.CHANGE_FEED_QUEUE_SIZE)
