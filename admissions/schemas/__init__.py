from admissions.schemas.event import EventCreate, EventResponse, EventListResponse
from admissions.schemas.participation import (
    JoinRequest, ReasonRequest, BulkRemoveRequest, ManualAddRequest,
    ParticipationResponse, ParticipantResponse, TransitionResponse,
    ParticipationCheckResponse, RejectionCheckResponse, BulkRemoveResponse,
)
from admissions.schemas.notification import NotificationResponse

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse",
    "JoinRequest", "ReasonRequest", "BulkRemoveRequest", "ManualAddRequest",
    "ParticipationResponse", "ParticipantResponse", "TransitionResponse",
    "ParticipationCheckResponse", "RejectionCheckResponse", "BulkRemoveResponse",
    "NotificationResponse",
]
