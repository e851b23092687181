"""
Tests for the admission controller: join, approve, reject, remove, unjoin,
manual add and the reads, against a real database session.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from admissions.core.exceptions import (
    AlreadyJoinedError,
    AlreadyProcessedError,
    AuthorizationError,
    BlockedError,
    EventClosedError,
    NotFoundError,
    NotJoinedError,
    PersistenceError,
    ValidationError,
)
from admissions.models.enums import ParticipationRole, ParticipationStatus, Role
from admissions.models.participation import Participation
from admissions.models.rejection import RejectionRecord
from admissions.services import capacity, registry, rejection_ledger
from admissions.services.admission_service import AdmissionController
from admissions.services.registry import ParticipantQuery

from conftest import actor_of, create_event, create_user


async def participation_count(db, event_id: int) -> int:
    return await db.scalar(
        select(func.count()).select_from(Participation).where(Participation.event_id == event_id)
    )


@pytest.mark.asyncio
async def test_join_creates_pending_participation(controller, db_session, test_event, volunteer):
    """A join is PENDING and counted against the volunteer pool immediately."""
    participation = await controller.join(test_event.id, actor_of(volunteer))

    assert participation.status == ParticipationStatus.PENDING.value
    assert participation.role == ParticipationRole.VOLUNTEER.value
    assert participation.joined_at is not None

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 1
    assert test_event.current_scholars == 0


@pytest.mark.asyncio
async def test_scholar_account_joins_scholar_pool(controller, db_session, test_event, scholar):
    participation = await controller.join(test_event.id, actor_of(scholar))

    assert participation.role == ParticipationRole.SCHOLAR.value
    await db_session.refresh(test_event)
    assert test_event.current_scholars == 1
    assert test_event.current_volunteers == 0


@pytest.mark.asyncio
async def test_join_with_role_of_other_pool_is_rejected(controller, db_session, test_event, volunteer):
    with pytest.raises(ValidationError):
        await controller.join(test_event.id, actor_of(volunteer), role="scholar")

    with pytest.raises(ValidationError):
        await controller.join(test_event.id, actor_of(volunteer), role="wizard")

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0
    assert test_event.current_scholars == 0


@pytest.mark.asyncio
async def test_join_with_explicit_matching_role(controller, test_event, scholar):
    participation = await controller.join(test_event.id, actor_of(scholar), role="scholar")
    assert participation.role == "scholar"


@pytest.mark.asyncio
async def test_sponsor_cannot_join(controller, test_event, sponsor):
    with pytest.raises(AuthorizationError):
        await controller.join(test_event.id, actor_of(sponsor))


@pytest.mark.asyncio
async def test_duplicate_join_fails_and_counts_once(controller, db_session, test_event, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))

    with pytest.raises(AlreadyJoinedError):
        await controller.join(test_event.id, actor_of(volunteer))

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 1
    assert await participation_count(db_session, test_event.id) == 1


@pytest.mark.asyncio
async def test_join_closed_event(controller, closed_event, volunteer):
    with pytest.raises(EventClosedError):
        await controller.join(closed_event.id, actor_of(volunteer))


@pytest.mark.asyncio
async def test_join_unknown_event(controller, volunteer):
    with pytest.raises(NotFoundError):
        await controller.join(99999, actor_of(volunteer))


@pytest.mark.asyncio
async def test_approve_keeps_count(controller, db_session, test_event, admin, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))

    participation = await controller.approve(test_event.id, volunteer.id, actor_of(admin))

    assert participation.status == ParticipationStatus.ACTIVE.value
    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 1


@pytest.mark.asyncio
async def test_approve_twice_is_already_processed(controller, test_event, admin, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))
    await controller.approve(test_event.id, volunteer.id, actor_of(admin))

    with pytest.raises(AlreadyProcessedError):
        await controller.approve(test_event.id, volunteer.id, actor_of(admin))


@pytest.mark.asyncio
async def test_approve_unknown_participant(controller, test_event, admin, volunteer):
    with pytest.raises(NotFoundError):
        await controller.approve(test_event.id, volunteer.id, actor_of(admin))


@pytest.mark.asyncio
async def test_staff_can_approve_but_volunteer_cannot(controller, test_event, staff, volunteer, other_volunteer):
    await controller.join(test_event.id, actor_of(volunteer))

    with pytest.raises(AuthorizationError):
        await controller.approve(test_event.id, volunteer.id, actor_of(other_volunteer))

    participation = await controller.approve(test_event.id, volunteer.id, actor_of(staff))
    assert participation.status == "ACTIVE"


@pytest.mark.asyncio
async def test_reject_blocks_rejoin(controller, db_session, test_event, admin, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))

    record = await controller.reject(test_event.id, volunteer.id, actor_of(admin), reason="no-show history")

    assert record.reason == "no-show history"
    assert record.admin_id == admin.id
    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0
    assert await participation_count(db_session, test_event.id) == 0

    with pytest.raises(BlockedError) as exc_info:
        await controller.join(test_event.id, actor_of(volunteer))
    assert exc_info.value.reason == "no-show history"

    check = await controller.check_rejection(test_event.id, volunteer.id)
    assert check.is_rejected is True
    assert check.reason == "no-show history"
    assert check.rejected_at is not None


@pytest.mark.asyncio
async def test_reject_approved_participant(controller, db_session, test_event, admin, scholar):
    await controller.join(test_event.id, actor_of(scholar))
    await controller.approve(test_event.id, scholar.id, actor_of(admin))

    await controller.reject(test_event.id, scholar.id, actor_of(admin))

    await db_session.refresh(test_event)
    assert test_event.current_scholars == 0
    check = await controller.check_rejection(test_event.id, scholar.id)
    assert check.is_rejected is True
    assert check.reason is None


@pytest.mark.asyncio
async def test_reject_unknown_participant(controller, test_event, admin, volunteer):
    with pytest.raises(NotFoundError):
        await controller.reject(test_event.id, volunteer.id, actor_of(admin), reason="spam")

    check = await controller.check_rejection(test_event.id, volunteer.id)
    assert check.is_rejected is False


@pytest.mark.asyncio
async def test_repeat_rejection_overwrites_ledger_entry(db_session, test_event, admin, staff, volunteer):
    await rejection_ledger.upsert_rejection(db_session, test_event.id, volunteer.id, admin.id, "first")
    await db_session.commit()
    await rejection_ledger.upsert_rejection(db_session, test_event.id, volunteer.id, staff.id, "second")
    await db_session.commit()

    records = (await db_session.scalars(select(RejectionRecord))).all()
    assert len(records) == 1
    assert records[0].reason == "second"
    assert records[0].admin_id == staff.id


@pytest.mark.asyncio
async def test_remove_allows_rejoin(controller, db_session, test_event, admin, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))
    await controller.approve(test_event.id, volunteer.id, actor_of(admin))

    await controller.remove(test_event.id, volunteer.id, actor_of(admin), reason="schedule change")

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0
    assert (await controller.check_rejection(test_event.id, volunteer.id)).is_rejected is False

    participation = await controller.join(test_event.id, actor_of(volunteer))
    assert participation.status == "PENDING"


@pytest.mark.asyncio
async def test_unjoin(controller, db_session, test_event, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))

    await controller.unjoin(test_event.id, actor_of(volunteer))

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0
    assert (await controller.check_participation(test_event.id, volunteer.id)).has_joined is False

    with pytest.raises(NotJoinedError):
        await controller.unjoin(test_event.id, actor_of(volunteer))


@pytest.mark.asyncio
async def test_unjoin_after_approval_and_rejoin(controller, db_session, test_event, admin, volunteer):
    await controller.join(test_event.id, actor_of(volunteer))
    await controller.approve(test_event.id, volunteer.id, actor_of(admin))
    await controller.unjoin(test_event.id, actor_of(volunteer))

    await controller.join(test_event.id, actor_of(volunteer))

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 1


@pytest.mark.asyncio
async def test_decrement_is_floored_at_zero(db_session, test_event):
    await capacity.decrement(db_session, test_event.id, ParticipationRole.VOLUNTEER)
    await db_session.commit()

    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0


@pytest.mark.asyncio
async def test_check_participation(controller, test_event, admin, scholar):
    assert (await controller.check_participation(test_event.id, scholar.id)).has_joined is False

    await controller.join(test_event.id, actor_of(scholar))
    check = await controller.check_participation(test_event.id, scholar.id)
    assert check.has_joined is True
    assert check.status == "PENDING"
    assert check.role == "scholar"

    await controller.approve(test_event.id, scholar.id, actor_of(admin))
    assert (await controller.check_participation(test_event.id, scholar.id)).status == "ACTIVE"


@pytest.mark.asyncio
async def test_approve_then_reject_scenario(controller, db_session, admin):
    """
    Five volunteer slots, four taken (B among them). A joins and is
    approved; B is rejected and can no longer join.
    """
    event = await create_event(db_session, admin, total_volunteers=5)
    user_b = await create_user(db_session, Role.VOLUNTEER, "Bea")
    await controller.join(event.id, actor_of(user_b))
    for name in ("Cal", "Dee", "Eli"):
        other = await create_user(db_session, Role.VOLUNTEER, name)
        await controller.join(event.id, actor_of(other))
    await db_session.refresh(event)
    assert event.current_volunteers == 4

    user_a = await create_user(db_session, Role.VOLUNTEER, "Abe")
    participation = await controller.join(event.id, actor_of(user_a))
    assert participation.status == "PENDING"
    await db_session.refresh(event)
    assert event.current_volunteers == 5

    await controller.approve(event.id, user_a.id, actor_of(admin))
    await db_session.refresh(event)
    assert event.current_volunteers == 5
    assert (await controller.check_participation(event.id, user_a.id)).status == "ACTIVE"

    await controller.reject(event.id, user_b.id, actor_of(admin), reason="no-show history")
    await db_session.refresh(event)
    assert event.current_volunteers == 4
    assert (await controller.check_participation(event.id, user_b.id)).has_joined is False
    record = await rejection_ledger.get_rejection(db_session, event.id, user_b.id)
    assert record.reason == "no-show history"

    with pytest.raises(BlockedError):
        await controller.join(event.id, actor_of(user_b))


@pytest.mark.asyncio
async def test_list_participants_with_filters(controller, test_event, admin, volunteer, other_volunteer, scholar):
    for user in (volunteer, other_volunteer, scholar):
        await controller.join(test_event.id, actor_of(user))
    await controller.approve(test_event.id, other_volunteer.id, actor_of(admin))

    rows = await controller.list_participants(test_event.id, actor_of(admin))
    assert {user.id for _, user in rows} == {volunteer.id, other_volunteer.id, scholar.id}

    pending = await controller.list_participants(
        test_event.id, actor_of(admin), ParticipantQuery(status=ParticipationStatus.PENDING)
    )
    assert {user.id for _, user in pending} == {volunteer.id, scholar.id}

    scholars = await controller.list_participants(
        test_event.id, actor_of(admin), ParticipantQuery(role=ParticipationRole.SCHOLAR)
    )
    assert [(p.role, user.name) for p, user in scholars] == [("scholar", scholar.name)]


@pytest.mark.asyncio
async def test_list_participants_requires_manage_capability(controller, test_event, volunteer):
    with pytest.raises(AuthorizationError):
        await controller.list_participants(test_event.id, actor_of(volunteer))


@pytest.mark.asyncio
async def test_list_participants_unknown_event(controller, admin):
    with pytest.raises(NotFoundError):
        await controller.list_participants(424242, actor_of(admin))


@pytest.mark.asyncio
async def test_failed_write_rolls_back_and_publishes_nothing(
    controller, dispatcher, db_session, test_event, admin, volunteer, monkeypatch
):
    await controller.join(test_event.id, actor_of(volunteer))
    await dispatcher.drain()

    async def broken_set_status(*args, **kwargs):
        raise OperationalError("UPDATE event_participants", {}, Exception("deadlock detected"))

    monkeypatch.setattr(registry, "set_status", broken_set_status)

    with pytest.raises(PersistenceError):
        await controller.approve(test_event.id, volunteer.id, actor_of(admin))

    assert dispatcher.pending == 0
    check = await controller.check_participation(test_event.id, volunteer.id)
    assert check.status == "PENDING"


@pytest.mark.asyncio
async def test_counter_failure_rolls_back_participation_insert(
    controller, dispatcher, db_session, test_event, volunteer, monkeypatch
):
    async def broken_increment(*args, **kwargs):
        raise OperationalError("UPDATE events", {}, Exception("connection reset"))

    monkeypatch.setattr(capacity, "increment", broken_increment)

    with pytest.raises(PersistenceError):
        await controller.join(test_event.id, actor_of(volunteer))

    assert dispatcher.pending == 0
    assert await participation_count(db_session, test_event.id) == 0


@pytest.mark.asyncio
async def test_reads_retry_transient_errors(controller_session, dispatcher, test_event, volunteer, monkeypatch):
    controller = AdmissionController(controller_session, dispatcher, read_retries=1)
    real_get_participation = registry.get_participation
    calls = {"n": 0}

    async def flaky_get_participation(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))
        return await real_get_participation(*args, **kwargs)

    monkeypatch.setattr(registry, "get_participation", flaky_get_participation)

    check = await controller.check_participation(test_event.id, volunteer.id)

    assert check.has_joined is False
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_join_lost_insert_race_is_already_joined(controller, db_session, test_event, volunteer, monkeypatch):
    async def duplicate_insert(*args, **kwargs):
        raise IntegrityError("INSERT INTO event_participants", {}, Exception("duplicate key value"))

    monkeypatch.setattr(registry, "insert_participation", duplicate_insert)

    with pytest.raises(AlreadyJoinedError) as exc_info:
        await controller.join(test_event.id, actor_of(volunteer))

    assert exc_info.value.detail == "You have already joined this event"
    await db_session.refresh(test_event)
    assert test_event.current_volunteers == 0
