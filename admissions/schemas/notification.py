"""
Pydantic schemas for in-app notifications.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    type: str
    content: str
    related_id: Optional[int]
    actor_id: Optional[int]
    actor_name: Optional[str]
    actor_avatar: Optional[str]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
