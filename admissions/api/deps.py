"""
Shared FastAPI dependencies.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.db.session import get_db
from admissions.services.admission_service import AdmissionController
from admissions.services.notification_dispatcher import NotificationDispatcher, get_dispatcher


def get_admission_controller(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AdmissionController:
    return AdmissionController(db, dispatcher)
