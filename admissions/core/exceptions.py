"""
Domain error taxonomy for the admission workflow.

Services raise these instead of HTTPException so the same rules hold for
callers outside the HTTP layer. The API maps each class to its status code
in one place (see admissions.api.exception_handlers).
"""

from typing import Any, Optional


class AdmissionError(Exception):
    status_code: int = 400

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra


class ValidationError(AdmissionError):
    """Malformed id, role or request payload. Never retried."""

    status_code = 400


class AuthorizationError(AdmissionError):
    status_code = 403


class BlockedError(AdmissionError):
    """The (event, user) pair is in the rejection ledger."""

    status_code = 403

    def __init__(self, detail: str, reason: Optional[str] = None):
        super().__init__(detail, reason=reason)
        self.reason = reason


class NotFoundError(AdmissionError):
    status_code = 404


class ConflictError(AdmissionError):
    """
    The request does not fit the current participation state.
    Callers must re-query state before retrying.
    """

    status_code = 409


class AlreadyJoinedError(ConflictError):
    status_code = 409


class EventClosedError(ConflictError):
    status_code = 409


class EventFullError(ConflictError):
    status_code = 409


class AlreadyProcessedError(ConflictError):
    status_code = 400


class NotJoinedError(ConflictError):
    status_code = 400


class PersistenceError(AdmissionError):
    """Transaction abort or deadlock. Writes are never retried automatically."""

    status_code = 500


class NotificationError(Exception):
    """Email or in-app delivery failure. Only ever logged by the dispatcher."""

    def __init__(self, channel: str, detail: str):
        super().__init__(f"{channel}: {detail}")
        self.channel = channel
        self.detail = detail
