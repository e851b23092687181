"""
Pytest fixtures for test database, client, notifications and authentication.

Tables are created and dropped around every test. TEST_DATABASE_URL selects
the database; without it each test gets its own SQLite file via aiosqlite.
"""

import os

# Settings are read at import time; keep tests off Redis and off the
# production database before anything from the app is imported.
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./admissions_test_default.db")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from admissions.main import app
from admissions.db.base import Base
from admissions.db.session import get_db
from admissions.core.permissions import Actor
from admissions.core.security import create_access_token
from admissions.models import Event, User
from admissions.models.enums import Role
from admissions.services.admission_service import AdmissionController
from admissions.services.interfaces.email_gateway import EmailGateway
from admissions.services.notification_dispatcher import NotificationDispatcher, get_dispatcher
from admissions.services.notification_store import InAppNotificationStore

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


def is_postgres() -> bool:
    return bool(TEST_DATABASE_URL) and TEST_DATABASE_URL.startswith("postgresql")


class RecordingEmailGateway(EmailGateway):
    """Keeps every send in memory; `fail` makes the next N sends of a kind raise."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail: dict[str, int] = {}

    async def _record(self, kind: str, to: str, name: str, event_title: str, reason: Optional[str] = None):
        if self.fail.get(kind, 0) > 0:
            self.fail[kind] -= 1
            raise ConnectionError(f"{kind} mail relay unavailable")
        self.sent.append({"kind": kind, "to": to, "name": name, "event_title": event_title, "reason": reason})

    async def send_pending_email(self, to, name, event_title):
        await self._record("pending", to, name, event_title)

    async def send_approval_email(self, to, name, event_title):
        await self._record("approval", to, name, event_title)

    async def send_rejection_email(self, to, name, event_title, reason=None):
        await self._record("rejection", to, name, event_title, reason)

    async def send_removal_email(self, to, name, event_title, reason=None):
        await self._record("removal", to, name, event_title, reason)

    def kinds(self) -> list[str]:
        return [m["kind"] for m in self.sent]


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'admissions.db'}"
    test_engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_gateway() -> RecordingEmailGateway:
    return RecordingEmailGateway()


@pytest.fixture
def dispatcher(email_gateway, session_factory) -> NotificationDispatcher:
    """Not started: tests flush the queue explicitly with drain()."""
    return NotificationDispatcher(
        email_gateway,
        InAppNotificationStore(session_factory),
        workers=2,
        queue_maxsize=100,
        max_attempts=3,
        retry_base_delay=0,
    )


@pytest_asyncio.fixture(scope="function")
async def controller_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Separate from db_session: a controller rollback expires only its own objects."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def controller(controller_session, dispatcher) -> AdmissionController:
    return AdmissionController(controller_session, dispatcher, enforce_capacity=False, read_retries=0)


@pytest.fixture
def enforcing_controller(controller_session, dispatcher) -> AdmissionController:
    return AdmissionController(controller_session, dispatcher, enforce_capacity=True, read_retries=0)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh test-database session per request."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(db: AsyncSession, role: Role, name: str, **kwargs) -> User:
    user = User(
        email=f"{name.lower().replace(' ', '.')}@example.com",
        name=name,
        role=role.value,
        **kwargs,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin(db_session) -> User:
    return await create_user(db_session, Role.ADMIN, "Ada Admin", avatar="/avatars/ada.png")


@pytest_asyncio.fixture
async def staff(db_session) -> User:
    return await create_user(db_session, Role.STAFF, "Sam Staff")


@pytest_asyncio.fixture
async def volunteer(db_session) -> User:
    return await create_user(db_session, Role.VOLUNTEER, "Vic Volunteer")


@pytest_asyncio.fixture
async def other_volunteer(db_session) -> User:
    return await create_user(db_session, Role.VOLUNTEER, "Val Volunteer")


@pytest_asyncio.fixture
async def scholar(db_session) -> User:
    return await create_user(db_session, Role.SCHOLAR, "Sky Scholar")


@pytest_asyncio.fixture
async def sponsor(db_session) -> User:
    return await create_user(db_session, Role.SPONSOR, "Spencer Sponsor")


def actor_of(user: User) -> Actor:
    return Actor.from_user(user)


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


async def create_event(db: AsyncSession, creator: User, **overrides) -> Event:
    values = dict(
        title="Beach Cleanup",
        description="Saturday morning cleanup",
        date=datetime.now(timezone.utc) + timedelta(days=30),
        location="North Beach",
        status="OPEN",
        total_volunteers=5,
        current_volunteers=0,
        total_scholars=2,
        current_scholars=0,
        created_by=creator.id,
    )
    values.update(overrides)
    event = Event(**values)
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


@pytest_asyncio.fixture
async def test_event(db_session, admin) -> Event:
    """OPEN event with 5 volunteer and 2 scholar slots."""
    return await create_event(db_session, admin)


@pytest_asyncio.fixture
async def closed_event(db_session, admin) -> Event:
    return await create_event(db_session, admin, title="Past Gala", status="CLOSED")
