"""
Unit tests for optimistic message reconciliation
"""
from typing import Optional

from agileflow.client.api_client import APIResponse
from agileflow.client.optimistic import MessageComposer, OptimisticMessageList

AUTHOR = {"id": "u1", "name": "Asha", "role": "Student"}


def record(record_id: str, body: str, client_ref: Optional[str] = None) -> dict:
    return {"id": record_id, "user_id": "u1", "message": body, "client_ref": client_ref, "user": AUTHOR}


class FakeClient:
    """Stands in for AgileFlowAPIClient; replies with a canned response"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def _reply(self, body, client_ref):
        if self.fail:
            return APIResponse(status=500, data={"error": "boom"}, headers={}, success=False)
        data = {"message": "Message sent successfully", "data": record("m1", body, client_ref)}
        return APIResponse(status=201, data=data, headers={}, success=True)

    async def send_community_message(self, message, client_ref=None):
        self.calls.append(("community", message, client_ref))
        return self._reply(message, client_ref)

    async def send_private_message(self, receiver_id, message, client_ref=None):
        self.calls.append(("private", receiver_id, message, client_ref))
        return self._reply(message, client_ref)


class TestOptimisticMessageList:
    """Tests for two-phase message entries"""

    def test_pending_shows_immediately(self):
        """Test that a pending entry is listed before any server reply"""
        messages = OptimisticMessageList()
        ref = messages.add_pending("hello", author=AUTHOR)

        assert len(messages) == 1
        assert messages.pending_count == 1
        assert messages.items[0].correlation_id == ref
        assert messages.items[0].id is None

    def test_response_then_feed(self):
        """Test that the feed echo after the POST response is ignored"""
        messages = OptimisticMessageList()
        ref = messages.add_pending("hello")

        assert messages.confirm(record("m1", "hello", ref)) is True
        assert messages.confirm(record("m1", "hello", ref)) is False
        assert len(messages) == 1
        assert messages.pending_count == 0
        assert messages.items[0].id == "m1"

    def test_feed_then_response(self):
        """Test that the POST response after the feed event is ignored"""
        messages = OptimisticMessageList()
        ref = messages.add_pending("hello")

        feed_record = record("m1", "hello", ref)
        assert messages.confirm(feed_record) is True
        assert messages.confirm(dict(feed_record)) is False
        assert [e.id for e in messages.items] == ["m1"]

    def test_confirm_keeps_position(self):
        """Test that the confirmed record replaces its pending entry in place"""
        messages = OptimisticMessageList([record("m0", "earlier")])
        ref = messages.add_pending("mine")
        messages.confirm(record("m2", "someone else"))
        messages.confirm(record("m1", "mine", ref))

        assert [e.id for e in messages.items] == ["m0", "m1", "m2"]

    def test_foreign_record_appends(self):
        """Test that other users' messages are appended"""
        messages = OptimisticMessageList()
        messages.add_pending("mine")
        assert messages.confirm(record("m9", "theirs", "other-ref")) is True
        assert len(messages) == 2
        assert messages.pending_count == 1

    def test_record_without_id_ignored(self):
        """Test that a record with no id never matches a pending entry"""
        messages = OptimisticMessageList()
        ref = messages.add_pending("hello")
        assert messages.confirm({"message": "hello", "client_ref": ref}) is False
        assert messages.pending_count == 1

    def test_fail_removes_pending(self):
        """Test that a failed send drops the pending entry"""
        messages = OptimisticMessageList()
        ref = messages.add_pending("hello")
        assert messages.fail(ref) is True
        assert len(messages) == 0
        assert messages.fail(ref) is False

    def test_replace_all_keeps_uncovered_pending(self):
        """Test that a refetch keeps in-flight sends it does not include"""
        messages = OptimisticMessageList()
        covered = messages.add_pending("one")
        in_flight = messages.add_pending("two")

        messages.replace_all([record("m0", "older"), record("m1", "one", covered)])

        assert [e.id for e in messages.items] == ["m0", "m1", None]
        assert messages.items[-1].correlation_id == in_flight


class TestMessageComposer:
    """Tests for the send flow"""

    async def test_send_community(self):
        """Test that a successful send confirms the pending entry"""
        client = FakeClient()
        messages = OptimisticMessageList()
        composer = MessageComposer(client, messages, author=AUTHOR)

        response = await composer.send("hello")

        assert response.success
        assert client.calls[0][0] == "community"
        assert messages.pending_count == 0
        assert [e.id for e in messages.items] == ["m1"]

    async def test_send_private(self):
        """Test that a receiver switches to the private endpoint"""
        client = FakeClient()
        composer = MessageComposer(client, OptimisticMessageList(), receiver_id="p1")

        await composer.send("hi")

        kind, receiver_id, body, client_ref = client.calls[0]
        assert (kind, receiver_id, body) == ("private", "p1", "hi")
        assert client_ref

    async def test_send_failure(self):
        """Test that a rejected send removes the entry"""
        messages = OptimisticMessageList()
        composer = MessageComposer(FakeClient(fail=True), messages)

        response = await composer.send("hello")

        assert response.error == "boom"
        assert len(messages) == 0

    async def test_feed_echo_after_send(self):
        """Test that the INSERT event for our own send adds nothing"""
        client = FakeClient()
        messages = OptimisticMessageList()
        composer = MessageComposer(client, messages)
        await composer.send("hello")

        change = {"table": "community_messages", "event": "INSERT", "record": record("m1", "hello")}
        assert composer.on_change(change) is False
        assert len(messages) == 1

    def test_non_insert_ignored(self):
        """Test that UPDATE and DELETE events do not touch the list"""
        composer = MessageComposer(FakeClient(), OptimisticMessageList())
        assert composer.on_change({"event": "UPDATE", "record": record("m1", "x")}) is False
