"""
Participation registry access layer.

Thin query helpers over `event_participants`. They never commit; the
admission controller decides the transaction boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.exceptions import ValidationError
from admissions.models.enums import ParticipationRole, ParticipationStatus
from admissions.models.participation import Participation
from admissions.models.user import User


@dataclass(frozen=True)
class DateRange:
    """Inclusive range; either end may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValidationError("Date range start must not be after its end")

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class ParticipantQuery:
    status: Optional[ParticipationStatus] = None
    role: Optional[ParticipationRole] = None
    joined: DateRange = field(default_factory=DateRange)


async def get_participation(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> Optional[Participation]:
    stmt = select(Participation).where(
        Participation.event_id == event_id,
        Participation.user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    return await db.scalar(stmt)


async def insert_participation(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    role: ParticipationRole,
    status: ParticipationStatus,
) -> Participation:
    """Insert and flush so a duplicate pair fails here with IntegrityError."""
    participation = Participation(
        event_id=event_id,
        user_id=user_id,
        role=role.value,
        status=status.value,
    )
    db.add(participation)
    await db.flush()
    await db.refresh(participation)
    return participation


async def delete_participation(db: AsyncSession, participation: Participation) -> None:
    await db.delete(participation)
    await db.flush()


async def set_status(
    db: AsyncSession,
    participation: Participation,
    status: ParticipationStatus,
) -> Participation:
    participation.status = status.value
    await db.flush()
    return participation


async def list_participants(
    db: AsyncSession,
    event_id: int,
    query: Optional[ParticipantQuery] = None,
) -> list[tuple[Participation, User]]:
    query = query or ParticipantQuery()
    stmt = (
        select(Participation, User)
        .join(User, User.id == Participation.user_id)
        .where(Participation.event_id == event_id)
    )
    if query.status is not None:
        stmt = stmt.where(Participation.status == query.status.value)
    if query.role is not None:
        stmt = stmt.where(Participation.role == query.role.value)
    if query.joined.start is not None:
        stmt = stmt.where(Participation.joined_at >= query.joined.start)
    if query.joined.end is not None:
        stmt = stmt.where(Participation.joined_at <= query.joined.end)

    result = await db.execute(stmt.order_by(Participation.joined_at.desc(), Participation.id.desc()))
    return [(row.Participation, row.User) for row in result.all()]
