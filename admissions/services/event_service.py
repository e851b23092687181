"""
Event service: create and read events with their capacity pools.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.exceptions import NotFoundError, ValidationError
from admissions.core.logging import get_logger
from admissions.core.permissions import Actor, Capability, require_capability
from admissions.models.event import Event
from admissions.schemas.event import EventCreate
from admissions.services.registry import DateRange

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventQuery:
    page: int = 1
    page_size: int = 20
    upcoming_only: bool = True
    dates: DateRange = field(default_factory=DateRange)

    @property
    def cache_key(self) -> str:
        start = self.dates.start.isoformat() if self.dates.start else ""
        end = self.dates.end.isoformat() if self.dates.end else ""
        return f"page={self.page}&size={self.page_size}&upcoming={self.upcoming_only}&from={start}&to={end}"


async def create_event(db: AsyncSession, event_data: EventCreate, actor: Actor) -> Event:
    """Create a new OPEN event with empty pools."""
    require_capability(actor, Capability.MANAGE_EVENTS)
    if event_data.date <= datetime.now(timezone.utc):
        raise ValidationError("Event date must be in the future")

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        location=event_data.location,
        status="OPEN",
        total_volunteers=event_data.total_volunteers,
        current_volunteers=0,
        total_scholars=event_data.total_scholars,
        current_scholars=0,
        created_by=actor.id,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        volunteer_slots=event.total_volunteers,
        scholar_slots=event.total_scholars,
    )
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event with fresh counters."""
    event = await db.get(Event, event_id, populate_existing=True)

    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def list_events(db: AsyncSession, query: EventQuery) -> tuple[list[Event], int]:
    """
    List events with pagination.
    Uses the ix_events_date index for the date filters.
    """
    stmt = select(Event)

    if query.upcoming_only:
        stmt = stmt.where(Event.date >= datetime.now(timezone.utc))
    if query.dates.start is not None:
        stmt = stmt.where(Event.date >= query.dates.start)
    if query.dates.end is not None:
        stmt = stmt.where(Event.date <= query.dates.end)

    count_query = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        stmt
        .order_by(Event.date.asc(), Event.id.asc())
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total
