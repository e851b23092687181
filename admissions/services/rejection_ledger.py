"""
Rejection ledger: permanent per-(event, user) block list.

Written only by the reject transition. The table is created by migration
and always present; there is no unblock operation.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.models.rejection import RejectionRecord


async def get_rejection(db: AsyncSession, event_id: int, user_id: int) -> Optional[RejectionRecord]:
    return await db.scalar(
        select(RejectionRecord).where(
            RejectionRecord.event_id == event_id,
            RejectionRecord.user_id == user_id,
        )
    )


async def upsert_rejection(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    admin_id: int,
    reason: Optional[str],
) -> RejectionRecord:
    """
    Create the ledger entry, or overwrite reason and admin on a repeat
    rejection of the same pair. Runs inside the caller's transaction.
    """
    record = await db.scalar(
        select(RejectionRecord)
        .where(
            RejectionRecord.event_id == event_id,
            RejectionRecord.user_id == user_id,
        )
        .with_for_update()
    )
    if record is None:
        record = RejectionRecord(event_id=event_id, user_id=user_id, admin_id=admin_id, reason=reason)
        db.add(record)
    else:
        record.admin_id = admin_id
        record.reason = reason

    await db.flush()
    await db.refresh(record)
    return record
