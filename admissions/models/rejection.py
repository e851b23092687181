"""
Rejection ledger entry. Its existence blocks every future join for the
(event, user) pair; rows are only ever inserted or have their reason and
admin overwritten by a repeat rejection.
"""

from sqlalchemy import Column, Integer, Text, ForeignKey, UniqueConstraint

from admissions.db.base import Base, TimestampMixin


class RejectionRecord(Base, TimestampMixin):
    __tablename__ = "rejected_participants"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_rejected_participant"),
    )

    def __repr__(self) -> str:
        return f"<RejectionRecord(event={self.event_id}, user={self.user_id}, admin={self.admin_id})>"
