"""
Optimistic message list for chat views.

A message is shown as soon as the user hits send (pending), then replaced
in place by the authoritative record. The record may arrive first through
the POST response or first through the change feed; either way it is
matched by the client-generated correlation id carried in ``client_ref``,
and a record whose id is already listed is ignored.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from agileflow.client.api_client import AgileFlowAPIClient, APIResponse


@dataclass
class MessageEntry:
    body: str
    correlation_id: Optional[str] = None
    author: Optional[Dict[str, Any]] = None
    record: Optional[Dict[str, Any]] = None

    @property
    def pending(self) -> bool:
        return self.record is None

    @property
    def id(self) -> Optional[str]:
        return self.record.get("id") if self.record else None

    @classmethod
    def confirmed(cls, record: Dict[str, Any]) -> "MessageEntry":
        return cls(
            body=record.get("message", ""),
            correlation_id=record.get("client_ref"),
            author=record.get("user") or record.get("sender"),
            record=record,
        )


class OptimisticMessageList:
    """Two-phase list: pending entries keyed by correlation id, confirmed entries by record id"""

    def __init__(self, records: Iterable[Dict[str, Any]] = ()):
        self._entries: List[MessageEntry] = [MessageEntry.confirmed(r) for r in records]

    def add_pending(self, body: str, author: Optional[Dict[str, Any]] = None) -> str:
        correlation_id = uuid.uuid4().hex
        self._entries.append(MessageEntry(body=body, correlation_id=correlation_id, author=author))
        return correlation_id

    def _find_pending(self, correlation_id: Optional[str]) -> Optional[int]:
        if not correlation_id:
            return None
        for index, entry in enumerate(self._entries):
            if entry.pending and entry.correlation_id == correlation_id:
                return index
        return None

    def has_record(self, record_id: str) -> bool:
        return any(not entry.pending and entry.id == record_id for entry in self._entries)

    def confirm(self, record: Dict[str, Any]) -> bool:
        """
        Merge an authoritative record. Returns False when the record has no id
        or is already present, True when it replaced a pending entry or was appended.
        """
        record_id = record.get("id")
        if not record_id or self.has_record(record_id):
            return False

        index = self._find_pending(record.get("client_ref"))
        if index is not None:
            self._entries[index] = MessageEntry.confirmed(record)
        else:
            self._entries.append(MessageEntry.confirmed(record))
        return True

    def fail(self, correlation_id: str) -> bool:
        index = self._find_pending(correlation_id)
        if index is None:
            return False
        del self._entries[index]
        return True

    def replace_all(self, records: Iterable[Dict[str, Any]]) -> None:
        """Reset from a full fetch, keeping pending entries the fetch does not cover"""
        confirmed = [MessageEntry.confirmed(r) for r in records]
        covered = {entry.correlation_id for entry in confirmed if entry.correlation_id}
        still_pending = [
            entry for entry in self._entries
            if entry.pending and entry.correlation_id not in covered
        ]
        self._entries = confirmed + still_pending

    @property
    def items(self) -> List[MessageEntry]:
        return list(self._entries)

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._entries if entry.pending)

    def __len__(self) -> int:
        return len(self._entries)


class MessageComposer:
    """
    Send flow for one chat view: add pending, post, then confirm or fail.
    ``receiver_id`` switches from the community channel to a private thread.
    """

    def __init__(
        self,
        client: AgileFlowAPIClient,
        messages: OptimisticMessageList,
        receiver_id: Optional[str] = None,
        author: Optional[Dict[str, Any]] = None,
    ):
        self.client = client
        self.messages = messages
        self.receiver_id = receiver_id
        self.author = author

    async def send(self, body: str) -> APIResponse:
        correlation_id = self.messages.add_pending(body, author=self.author)

        if self.receiver_id:
            response = await self.client.send_private_message(
                self.receiver_id, body, client_ref=correlation_id
            )
        else:
            response = await self.client.send_community_message(body, client_ref=correlation_id)

        if response.success and isinstance(response.data, dict) and response.data.get("data"):
            self.messages.confirm(response.data["data"])
        else:
            self.messages.fail(correlation_id)
        return response

    def on_change(self, change: Dict[str, Any]) -> bool:
        """Feed handler for INSERT events on the matching table"""
        if change.get("event") != "INSERT":
            return False
        return self.messages.confirm(change.get("record") or {})
