"""
Participation model: one user's relationship to one event.

Key design decisions:
- Unique constraint on (event_id, user_id) makes concurrent joins for the
  same pair resolve to one row and one IntegrityError
- Rows are deleted on unjoin/remove/reject; there is no "left" status
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func

from admissions.db.base import Base


class Participation(Base):
    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="volunteer")
    status = Column(String(20), nullable=False, default="PENDING")
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participant"),
        CheckConstraint("role IN ('volunteer', 'scholar')", name="check_participation_role"),
        CheckConstraint("status IN ('PENDING', 'ACTIVE')", name="check_participation_status"),
    )

    def __repr__(self) -> str:
        return f"<Participation(event={self.event_id}, user={self.user_id}, role={self.role}, status={self.status})>"
