"""Closed value sets stored as strings in the database."""

import enum


class Role(str, enum.Enum):
    """Account role of a user."""

    ADMIN = "admin"
    STAFF = "staff"
    VOLUNTEER = "volunteer"
    SCHOLAR = "scholar"
    SPONSOR = "sponsor"


class ParticipationRole(str, enum.Enum):
    """Capacity pool a participation counts against."""

    VOLUNTEER = "volunteer"
    SCHOLAR = "scholar"


class ParticipationStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class EventStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class NotificationType(str, enum.Enum):
    JOIN_REQUEST = "event_join_request"
    APPROVAL = "event_approval"
    REJECTION = "event_rejection"
    REMOVAL = "participant_removal"
    LEAVE = "event_leave"
    ADDED = "event_added"
