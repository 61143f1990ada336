"""
Agile Flow - Test Configuration and Fixtures
"""
import os
from dataclasses import dataclass
from typing import AsyncGenerator, Dict, List, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test_agileflow.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['SMTP_HOST'] = ''
os.environ['LOG_FILE'] = ''

from agileflow.main import app
from agileflow.core.database import Base, get_db, create_engine_for_url
from agileflow.core.security import create_access_token
from agileflow.models.user import UserRole
from agileflow.modules.access.policy import Actor
from agileflow.services.change_feed import ChangeFeed
from agileflow.services.email_service import EmailService, get_email_service
from agileflow.services.user_service import UserService

fake = Faker()

TEST_PASSWORD = 'testpassword123'


@dataclass
class Member:
    """A registered user as seen by the tests: plain values, no ORM state"""
    id: str
    email: str
    name: str
    role: UserRole
    password: str = TEST_PASSWORD

    @property
    def actor(self) -> Actor:
        return Actor(id=self.id, role=self.role, name=self.name, email=self.email)

    @property
    def headers(self) -> Dict[str, str]:
        token = create_access_token({'sub': self.id, 'email': self.email, 'role': self.role.value})
        return {'Authorization': f'Bearer {token}'}


class RecordingEmailService(EmailService):
    """Email service double that records calls instead of talking SMTP"""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail
        self.sent: List[tuple] = []

    async def send_task_assignment_email(self, *args, **kwargs) -> bool:
        if self.fail:
            raise RuntimeError('SMTP server unreachable')
        self.sent.append(args)
        return True


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite per test, with foreign keys enforced"""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_recorder() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
async def client(db_session: AsyncSession, email_recorder: RecordingEmailService) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and email overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_recorder

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed(max_queue_size=10)


@pytest.fixture
def make_member(db_session: AsyncSession):
    """Factory creating identity account plus profile for a role"""
    async def _make(role: UserRole = UserRole.STUDENT, created_by: Optional[str] = None, name: Optional[str] = None) -> Member:
        user = await UserService(db_session, feed=ChangeFeed()).create_profile(
            email=fake.unique.email(),
            password=TEST_PASSWORD,
            name=name or fake.name(),
            role=role,
            created_by=created_by,
        )
        return Member(id=user.id, email=user.email, name=user.name, role=UserRole(user.role))
    return _make


@pytest.fixture
async def hod(make_member) -> Member:
    return await make_member(UserRole.HOD)


@pytest.fixture
async def professor(make_member) -> Member:
    return await make_member(UserRole.PROFESSOR)


@pytest.fixture
async def student(make_member) -> Member:
    return await make_member(UserRole.STUDENT)


@pytest.fixture
async def staff(make_member) -> Member:
    return await make_member(UserRole.SUPPORTING_STAFF)
