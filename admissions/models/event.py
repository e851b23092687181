"""
Event model with per-role slot tracking.

Key design decisions:
- Volunteer and scholar pools are independent ceiling/counter pairs
- Counters are denormalized and only ever changed by single UPDATE
  statements inside the admission transaction
- No `current <= total` constraint: unless capacity is enforced, joins past
  the ceiling are admitted and the counter keeps counting
- Index on `date` for range queries (e.g., "events this week")
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint

from admissions.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="OPEN")

    total_volunteers = Column(Integer, nullable=False, default=0)
    current_volunteers = Column(Integer, nullable=False, default=0)
    total_scholars = Column(Integer, nullable=False, default=0)
    current_scholars = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Bumped on every counter change
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("total_volunteers >= 0", name="check_total_volunteers_non_negative"),
        CheckConstraint("current_volunteers >= 0", name="check_current_volunteers_non_negative"),
        CheckConstraint("total_scholars >= 0", name="check_total_scholars_non_negative"),
        CheckConstraint("current_scholars >= 0", name="check_current_scholars_non_negative"),
        CheckConstraint("status IN ('OPEN', 'CLOSED')", name="check_event_status"),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, "
            f"volunteers={self.current_volunteers}/{self.total_volunteers}, "
            f"scholars={self.current_scholars}/{self.total_scholars})>"
        )
