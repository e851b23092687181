"""
Capacity tracker: per-event, per-role ceiling and running count.

CONCURRENCY STRATEGY: Single-statement counter updates
======================================================

Every counter change is one UPDATE executed inside the caller's
transaction, right next to the participation insert/delete it accounts for:

  UPDATE events SET current_volunteers = current_volunteers + 1, version = version + 1
  WHERE id = :event_id [AND current_volunteers < total_volunteers]

The database applies the arithmetic under its row lock, so concurrent joins
never lose an increment. The bracketed guard is only added when capacity is
enforced; then `rowcount == 0` means the pool is full and the caller's
transaction rolls back together with the participation insert.

Without the guard two joins racing for the last slot both succeed and
`current` ends above `total`. That is the observed admission policy and is
kept as the default; see ENFORCE_CAPACITY.

Decrements are floored at zero with `WHERE current > 0`.
"""

from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.exceptions import EventFullError, NotFoundError
from admissions.core.logging import get_logger
from admissions.core.metrics import capacity_overflows, capacity_refusals
from admissions.models.enums import ParticipationRole
from admissions.models.event import Event

logger = get_logger(__name__)


def _columns(role: ParticipationRole):
    if role == ParticipationRole.SCHOLAR:
        return Event.current_scholars, Event.total_scholars
    return Event.current_volunteers, Event.total_volunteers


@dataclass(frozen=True)
class PoolSnapshot:
    role: ParticipationRole
    current: int
    total: int

    @property
    def over_capacity(self) -> bool:
        return self.current > self.total


async def increment(
    db: AsyncSession,
    event_id: int,
    role: ParticipationRole,
    *,
    enforce: bool,
) -> PoolSnapshot:
    current_col, total_col = _columns(role)

    stmt = (
        update(Event)
        .where(Event.id == event_id)
        .values({current_col: current_col + 1, Event.version: Event.version + 1})
        .execution_options(synchronize_session=False)
    )
    if enforce:
        stmt = stmt.where(current_col < total_col)

    result = await db.execute(stmt)
    if result.rowcount == 0:
        if not enforce:
            raise NotFoundError(f"Event {event_id} not found")
        capacity_refusals.labels(role=role.value).inc()
        logger.warning("capacity_full", event_id=event_id, role=role.value)
        raise EventFullError(f"Event has reached maximum {role.value} capacity")

    snapshot = await read_pool(db, event_id, role)
    if snapshot.over_capacity:
        capacity_overflows.labels(role=role.value).inc()
        logger.warning(
            "capacity_exceeded",
            event_id=event_id,
            role=role.value,
            current=snapshot.current,
            total=snapshot.total,
        )
    return snapshot


async def decrement(db: AsyncSession, event_id: int, role: ParticipationRole) -> None:
    current_col, _ = _columns(role)
    await db.execute(
        update(Event)
        .where(Event.id == event_id, current_col > 0)
        .values({current_col: current_col - 1, Event.version: Event.version + 1})
        .execution_options(synchronize_session=False)
    )


async def read_pool(db: AsyncSession, event_id: int, role: ParticipationRole) -> PoolSnapshot:
    current_col, total_col = _columns(role)
    row = (await db.execute(select(current_col, total_col).where(Event.id == event_id))).one()
    return PoolSnapshot(role=role, current=row[0], total=row[1])
