"""
Tests for the realtime websocket stream
"""
import asyncio
import logging
from typing import Dict, List

import pytest
from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from agileflow.api.v1.endpoints.realtime import realtime_websocket
from agileflow.core.database import Base, create_engine_for_url, get_db
from agileflow.core.logging_config import logger
from agileflow.core.security import create_access_token
from agileflow.main import app
from agileflow.models.user import UserRole
from agileflow.services.change_feed import ChangeFeed, ChangeType, change_feed
from agileflow.services.user_service import UserService

fake = Faker()


@pytest.fixture
def realtime_members(tmp_path) -> Dict[UserRole, Dict[str, str]]:
    """
    Members in a file-backed database the websocket can reach.

    TestClient runs the app on its own event loop, so the engine uses
    NullPool connections opened on whichever loop asks for them.
    """
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'realtime.db'}")
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        members = {}
        async with session_factory() as session:
            service = UserService(session, feed=ChangeFeed())
            for role in (UserRole.HOD, UserRole.PROFESSOR, UserRole.STUDENT):
                user = await service.create_profile(
                    email=fake.unique.email(), password='secret123', name=fake.name(), role=role
                )
                token = create_access_token({'sub': user.id, 'email': user.email, 'role': role.value})
                members[role] = {'id': user.id, 'token': token}
        return members

    async def override_get_db():
        async with session_factory() as session:
            yield session

    members = asyncio.run(seed())
    app.dependency_overrides[get_db] = override_get_db
    yield members
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def ws_url(token: str, table: str, event: str = '*') -> str:
    return f'/api/realtime/ws?token={token}&table={table}&event={event}'


def open_and_sync(ws) -> None:
    """The pong proves the subscription is registered before anything is published"""
    ws.send_text('ping')
    assert ws.receive_text() == 'pong'


class TestRealtimeHandshake:
    """Tests for connection-level rejection"""

    def test_bad_token_closes_4001(self):
        """Test that an invalid token closes the socket before accept"""
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(ws_url('garbage', 'tasks')) as ws:
                ws.receive_text()
        assert exc_info.value.code == 4001

    def test_missing_token_closes_4001(self):
        """Test that a missing token is treated the same way"""
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect('/api/realtime/ws?table=messages') as ws:
                ws.receive_text()
        assert exc_info.value.code == 4001

    def test_unknown_table_closes_4004(self, realtime_members):
        """Test that subscribing to a table outside the feed is refused"""
        client = TestClient(app)
        token = realtime_members[UserRole.HOD]['token']
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(ws_url(token, 'grades')) as ws:
                ws.receive_text()
        assert exc_info.value.code == 4004

    def test_unknown_event_closes_4004(self, realtime_members):
        """Test that an event other than INSERT, UPDATE, DELETE or * is refused"""
        client = TestClient(app)
        token = realtime_members[UserRole.HOD]['token']
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(ws_url(token, 'tasks', 'TRUNCATE')) as ws:
                ws.receive_text()
        assert exc_info.value.code == 4004


class TestRealtimeStream:
    """Tests for events pushed over an accepted socket"""

    def test_ping_pong(self, realtime_members):
        """Test the keepalive reply"""
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.STUDENT]['token'], 'tasks')) as ws:
            ws.send_text('ping')
            assert ws.receive_text() == 'pong'

    def test_streams_published_event(self, realtime_members):
        """Test that a committed change arrives as JSON"""
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.STUDENT]['token'], 'community_messages', 'INSERT')) as ws:
            open_and_sync(ws)
            ws.portal.call(change_feed.publish, 'community_messages', ChangeType.INSERT, {'id': 'c1', 'message': 'hi'})

            frame = ws.receive_json()

        assert frame['table'] == 'community_messages'
        assert frame['event'] == 'INSERT'
        assert frame['record'] == {'id': 'c1', 'message': 'hi'}
        assert 'timestamp' in frame

    def test_event_filter(self, realtime_members):
        """Test that an INSERT-only socket skips UPDATE events"""
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.STUDENT]['token'], 'community_messages', 'INSERT')) as ws:
            open_and_sync(ws)
            ws.portal.call(change_feed.publish, 'community_messages', ChangeType.UPDATE, {'id': 'c0'})
            ws.portal.call(change_feed.publish, 'community_messages', ChangeType.INSERT, {'id': 'c1'})

            frame = ws.receive_json()

        assert frame['event'] == 'INSERT'
        assert frame['record']['id'] == 'c1'

    def test_task_rows_filtered_per_student(self, realtime_members):
        """Test that a Student only receives tasks assigned to them"""
        student_id = realtime_members[UserRole.STUDENT]['id']
        professor_id = realtime_members[UserRole.PROFESSOR]['id']
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.STUDENT]['token'], 'tasks')) as ws:
            open_and_sync(ws)
            hidden = {'id': 't-hidden', 'assigned_by': professor_id, 'assigned_to': 'someone-else'}
            visible = {'id': 't-mine', 'assigned_by': professor_id, 'assigned_to': student_id}
            ws.portal.call(change_feed.publish, 'tasks', ChangeType.INSERT, hidden)
            ws.portal.call(change_feed.publish, 'tasks', ChangeType.INSERT, visible)

            frame = ws.receive_json()

        assert frame['record']['id'] == 't-mine'

    def test_private_messages_filtered_per_participant(self, realtime_members):
        """Test that a Professor only receives private messages they are part of"""
        hod_id = realtime_members[UserRole.HOD]['id']
        professor_id = realtime_members[UserRole.PROFESSOR]['id']
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.PROFESSOR]['token'], 'messages', 'INSERT')) as ws:
            open_and_sync(ws)
            other = {'id': 'm-other', 'sender_id': hod_id, 'receiver_id': 'another-professor'}
            mine = {'id': 'm-mine', 'sender_id': hod_id, 'receiver_id': professor_id}
            ws.portal.call(change_feed.publish, 'messages', ChangeType.INSERT, other)
            ws.portal.call(change_feed.publish, 'messages', ChangeType.INSERT, mine)

            frame = ws.receive_json()

        assert frame['record']['id'] == 'm-mine'

    def test_disconnect_unsubscribes(self, realtime_members):
        """Test that closing the socket removes its subscription"""
        before = change_feed.subscriber_count
        client = TestClient(app)
        with client.websocket_connect(ws_url(realtime_members[UserRole.HOD]['token'], 'users')) as ws:
            open_and_sync(ws)
            assert change_feed.subscriber_count == before + 1
        assert change_feed.subscriber_count == before


class FailingSocket:
    """Accepts, then fails every send; disconnects once a change has been published"""

    def __init__(self):
        self.accepted = False
        self.closed_with = None

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = ''):
        self.closed_with = code

    async def send_text(self, data: str):
        raise RuntimeError('socket already closed')

    async def receive_text(self) -> str:
        change_feed.publish('users', ChangeType.UPDATE, {'id': 'u1'})
        for _ in range(5):
            await asyncio.sleep(0)
        raise WebSocketDisconnect(code=1006)


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class TestForwarderCleanup:
    """Tests for collecting the forwarding task on disconnect"""

    async def test_forwarder_error_is_collected(self, db_session, hod):
        """Test that a failed send is logged and the subscription is released"""
        handler = RecordingHandler()
        logger.addHandler(handler)
        before = change_feed.subscriber_count
        socket = FailingSocket()
        token = hod.headers['Authorization'].split(' ', 1)[1]

        try:
            await realtime_websocket(socket, token=token, table='users', event='*', db=db_session)
        finally:
            logger.removeHandler(handler)

        assert socket.accepted
        assert change_feed.subscriber_count == before
        errors = [r for r in handler.records if getattr(r, 'error_context', None) == 'realtime_forward']
        assert len(errors) == 1
        assert errors[0].error_type == 'RuntimeError'
