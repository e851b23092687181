"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from admissions.api.routes import events, participants, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(participants.router)
api_router.include_router(notifications.router)
