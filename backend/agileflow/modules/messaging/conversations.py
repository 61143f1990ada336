"""
Conversation derivation for the private inbox.

Given every private message that involves the actor, produce one entry per
counterpart carrying the newest message of that thread.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class Conversation:
    user: Dict[str, Any]
    last_message: str
    last_message_time: datetime
    unread: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "lastMessage": self.last_message,
            "lastMessageTime": self.last_message_time,
            "unread": self.unread,
        }


def _summary(user: Any, fallback_id: str) -> Dict[str, Any]:
    if user is None:
        return {"id": fallback_id, "name": None, "role": None}
    role = getattr(user.role, "value", user.role)
    return {"id": user.id, "name": user.name, "role": role}


def counterpart_id(actor_id: str, message: Any) -> str:
    return message.receiver_id if message.sender_id == actor_id else message.sender_id


def derive_conversations(actor_id: str, messages: Iterable[Any]) -> List[Conversation]:
    """
    Newest message per counterpart, most recent thread first.

    ``messages`` need ``sender_id``, ``receiver_id``, ``message``, ``read``
    and ``created_at``; ``sender``/``receiver`` user rows are used for the
    summaries when present.
    """
    ordered = sorted(messages, key=lambda m: m.created_at, reverse=True)
    seen = set()
    conversations: List[Conversation] = []

    for message in ordered:
        other_id = counterpart_id(actor_id, message)
        if other_id in seen:
            continue
        seen.add(other_id)

        other: Optional[Any]
        if message.sender_id == actor_id:
            other = getattr(message, "receiver", None)
        else:
            other = getattr(message, "sender", None)

        conversations.append(Conversation(
            user=_summary(other, other_id),
            last_message=message.message,
            last_message_time=message.created_at,
            unread=(not message.read) and message.receiver_id == actor_id,
        ))

    return conversations
