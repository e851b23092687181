"""
Pydantic schemas for admission requests and responses.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class JoinRequest(BaseModel):
    # "volunteer" or "scholar"; must match the account role
    role: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BulkRemoveRequest(BaseModel):
    user_ids: list[int]
    reason: Optional[str] = Field(None, max_length=1000)


class ManualAddRequest(BaseModel):
    user_id: int
    role: Optional[str] = None


class ParticipationResponse(BaseModel):
    event_id: int
    user_id: int
    role: str
    status: str
    joined_at: datetime

    model_config = {"from_attributes": True}


class ParticipantResponse(ParticipationResponse):
    name: str
    email: str
    avatar: Optional[str] = None


class TransitionResponse(BaseModel):
    message: str
    event_id: int
    user_id: int
    reason: Optional[str] = None


class ParticipationCheckResponse(BaseModel):
    has_joined: bool
    status: Optional[str] = None
    role: Optional[str] = None


class RejectionCheckResponse(BaseModel):
    is_rejected: bool
    reason: Optional[str] = None
    rejected_at: Optional[datetime] = None


class BulkRemoveFailure(BaseModel):
    user_id: int
    error: str


class BulkRemoveResponse(BaseModel):
    removed_count: int
    failures: list[BulkRemoveFailure]
