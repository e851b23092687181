"""
Participant management endpoints for admins and staff.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from admissions.api.deps import get_admission_controller
from admissions.core.exceptions import ValidationError
from admissions.core.permissions import Actor, Capability, require_capability
from admissions.core.security import get_current_actor
from admissions.models.enums import ParticipationRole, ParticipationStatus
from admissions.schemas.participation import (
    BulkRemoveFailure,
    BulkRemoveRequest,
    BulkRemoveResponse,
    ManualAddRequest,
    ParticipantResponse,
    ParticipationResponse,
    ReasonRequest,
    TransitionResponse,
)
from admissions.services.admission_service import AdmissionController
from admissions.services.cache_service import (
    get_cached_participants,
    invalidate_event_cache,
    set_cached_participants,
)
from admissions.services.registry import DateRange, ParticipantQuery

router = APIRouter(prefix="/events/{event_id}/participants", tags=["Participants"])


def _parse_enum(enum_cls, value: Optional[str], name: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {name} '{value}'")


@router.get("", response_model=list[ParticipantResponse])
@router.get("/", response_model=list[ParticipantResponse], include_in_schema=False)
async def list_participants(
    event_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    role: Optional[str] = Query(None),
    joined_after: Optional[datetime] = Query(None),
    joined_before: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """List an event's participants with user details, newest first."""
    query = ParticipantQuery(
        status=_parse_enum(ParticipationStatus, status_filter, "status"),
        role=_parse_enum(ParticipationRole, role, "role"),
        joined=DateRange(start=joined_after, end=joined_before),
    )
    cache_key = f"status={status_filter}&role={role}&from={joined_after}&to={joined_before}"

    # Checked here as well so a cache hit never bypasses authorization
    require_capability(actor, Capability.MANAGE_PARTICIPANTS)
    cached = await get_cached_participants(event_id, cache_key)
    if cached is not None:
        return cached

    rows = await controller.list_participants(event_id, actor, query)
    participants = [
        ParticipantResponse(
            event_id=p.event_id,
            user_id=p.user_id,
            role=p.role,
            status=p.status,
            joined_at=p.joined_at,
            name=u.name,
            email=u.email,
            avatar=u.avatar,
        ).model_dump(mode="json")
        for p, u in rows
    ]
    await set_cached_participants(event_id, cache_key, participants)
    return participants


@router.post("", response_model=ParticipationResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ParticipationResponse, status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def add_participant(
    event_id: int,
    body: ManualAddRequest,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Add a user directly as an approved participant."""
    participation = await controller.add_participant(event_id, body.user_id, actor, body.role)
    await invalidate_event_cache(event_id)
    return participation


@router.put("/{user_id}/approve", response_model=TransitionResponse)
async def approve_participant(
    event_id: int,
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    await controller.approve(event_id, user_id, actor)
    await invalidate_event_cache(event_id)
    return TransitionResponse(message="Participant approved successfully", event_id=event_id, user_id=user_id)


@router.put("/{user_id}/reject", response_model=TransitionResponse)
async def reject_participant(
    event_id: int,
    user_id: int,
    body: Optional[ReasonRequest] = None,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Reject a participant. The user can never rejoin this event."""
    reason = body.reason if body else None
    await controller.reject(event_id, user_id, actor, reason)
    await invalidate_event_cache(event_id)
    return TransitionResponse(
        message="Participant rejected successfully", event_id=event_id, user_id=user_id, reason=reason
    )


@router.delete("/{user_id}", response_model=TransitionResponse)
async def remove_participant(
    event_id: int,
    user_id: int,
    body: Optional[ReasonRequest] = None,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Remove a participant without blocking them from rejoining."""
    reason = body.reason if body else None
    await controller.remove(event_id, user_id, actor, reason)
    await invalidate_event_cache(event_id)
    return TransitionResponse(
        message="Participant removed successfully", event_id=event_id, user_id=user_id, reason=reason
    )


@router.delete("", response_model=BulkRemoveResponse)
@router.delete("/", response_model=BulkRemoveResponse, include_in_schema=False)
async def bulk_remove_participants(
    event_id: int,
    body: BulkRemoveRequest,
    actor: Actor = Depends(get_current_actor),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Remove several participants; failures are reported per user."""
    result = await controller.bulk_remove(event_id, body.user_ids, actor, body.reason)
    if result.removed_count:
        await invalidate_event_cache(event_id)
    return BulkRemoveResponse(
        removed_count=result.removed_count,
        failures=[BulkRemoveFailure(user_id=f.user_id, error=f.error) for f in result.failures],
    )
