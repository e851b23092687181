"""
Event endpoints: event reads (cached listing) and self-service admission.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.api.deps import get_admission_controller
from admissions.db.session import get_db
from admissions.schemas.event import EventCreate, EventResponse, EventListResponse
from admissions.schemas.participation import (
    JoinRequest,
    ParticipationResponse,
    ParticipationCheckResponse,
    RejectionCheckResponse,
    TransitionResponse,
)
from admissions.services.admission_service import AdmissionController
from admissions.services.event_service import EventQuery, create_event, get_event, list_events
from admissions.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from admissions.services.registry import DateRange
from admissions.core.permissions import Actor
from admissions.core.security import get_current_actor
from admissions.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Requires admin or staff."""
    event = await create_event(db, event_data, actor)
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    starts_after: Optional[datetime] = Query(None),
    starts_before: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination and an optional date range.
    Results are cached in Redis; any admission transition invalidates them
    because the slot counters change.
    """
    query = EventQuery(
        page=page,
        page_size=page_size,
        upcoming_only=upcoming_only,
        dates=DateRange(start=starts_after, end=starts_before),
    )

    cached = await get_cached_events(query.cache_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, query)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump() for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_events(query.cache_key, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (needs real-time slot counts)."""
    return await get_event(db, event_id)


@router.post("/{event_id}/join", response_model=ParticipationResponse)
async def join_event(
    event_id: int,
    body: Optional[JoinRequest] = None,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """
    Request to join an event. The participation starts PENDING and counts
    against the role's slots immediately.
    """
    participation = await controller.join(event_id, actor, body.role if body else None)
    await invalidate_event_cache(event_id)
    return participation


@router.post("/{event_id}/unjoin", response_model=TransitionResponse)
async def unjoin_event(
    event_id: int,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Leave an event, pending or approved."""
    await controller.unjoin(event_id, actor)
    await invalidate_event_cache(event_id)
    return TransitionResponse(message="Successfully unjoined event", event_id=event_id, user_id=actor.id)


@router.get("/{event_id}/check-participation", response_model=ParticipationCheckResponse)
async def check_participation(
    event_id: int,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    check = await controller.check_participation(event_id, actor.id)
    return ParticipationCheckResponse(has_joined=check.has_joined, status=check.status, role=check.role)


@router.get("/{event_id}/check-rejection", response_model=RejectionCheckResponse)
async def check_rejection(
    event_id: int,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    check = await controller.check_rejection(event_id, actor.id)
    return RejectionCheckResponse(
        is_rejected=check.is_rejected,
        reason=check.reason,
        rejected_at=check.rejected_at,
    )
