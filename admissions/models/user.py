"""
User model. The account role drives both capabilities and the capacity
pool a user joins under.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from admissions.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    avatar = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default="volunteer")
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'staff', 'volunteer', 'scholar', 'sponsor')",
            name="check_user_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
