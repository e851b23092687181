"""
Truly parallel join races. Each request gets its own connection, so these
only run against PostgreSQL (TEST_DATABASE_URL=postgresql+asyncpg://...).
"""

import asyncio

import pytest
from sqlalchemy import func, select

from admissions.core.exceptions import AlreadyJoinedError, EventFullError
from admissions.models.enums import Role
from admissions.models.participation import Participation
from admissions.services.admission_service import AdmissionController

from conftest import actor_of, create_event, create_user, is_postgres

pytestmark = pytest.mark.skipif(not is_postgres(), reason="parallel races need PostgreSQL row locking")


async def join_in_own_session(session_factory, dispatcher, event_id, user, enforce):
    async with session_factory() as session:
        controller = AdmissionController(session, dispatcher, enforce_capacity=enforce, read_retries=0)
        try:
            await controller.join(event_id, actor_of(user))
            return "joined"
        except AlreadyJoinedError:
            return "duplicate"
        except EventFullError:
            return "full"


async def make_volunteers(db_session, count):
    return [await create_user(db_session, Role.VOLUNTEER, f"Racer {i}") for i in range(count)]


@pytest.mark.asyncio
async def test_parallel_joins_same_user_admit_once(session_factory, dispatcher, db_session, test_event, volunteer):
    """Unique (event_id, user_id) lets exactly one of N concurrent joins win."""
    results = await asyncio.gather(*[
        join_in_own_session(session_factory, dispatcher, test_event.id, volunteer, False)
        for _ in range(10)
    ])

    assert results.count("joined") == 1
    assert results.count("duplicate") == 9
    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 1


@pytest.mark.asyncio
async def test_parallel_joins_over_admit_when_not_enforced(session_factory, dispatcher, db_session, admin):
    """No lost increments: the counter matches the rows even past the ceiling."""
    event = await create_event(db_session, admin, total_volunteers=3)
    users = await make_volunteers(db_session, 20)

    results = await asyncio.gather(*[
        join_in_own_session(session_factory, dispatcher, event.id, user, False) for user in users
    ])

    assert results.count("joined") == 20
    await db_session.refresh(event)
    rows = await db_session.scalar(
        select(func.count()).select_from(Participation).where(Participation.event_id == event.id)
    )
    assert event.current_volunteers == rows == 20


@pytest.mark.asyncio
async def test_parallel_joins_stop_at_enforced_ceiling(session_factory, dispatcher, db_session, admin):
    event = await create_event(db_session, admin, total_volunteers=3)
    users = await make_volunteers(db_session, 20)

    results = await asyncio.gather(*[
        join_in_own_session(session_factory, dispatcher, event.id, user, True) for user in users
    ])

    assert results.count("joined") == 3
    assert results.count("full") == 17
    await db_session.refresh(event)
    assert event.current_volunteers == 3
