from admissions.models.user import User
from admissions.models.event import Event
from admissions.models.participation import Participation
from admissions.models.rejection import RejectionRecord
from admissions.models.notification import Notification

__all__ = ["User", "Event", "Participation", "RejectionRecord", "Notification"]
