"""
Email gateway interface.
Message templates and transport live behind this boundary; the admission
workflow only decides which message goes to whom.
"""

from abc import ABC, abstractmethod
from typing import Optional


class EmailGateway(ABC):
    """
    Interface for participant emails.

    Implementations:
    - LoggingEmailGateway: records the send in the application log
    """

    @abstractmethod
    async def send_pending_email(self, to: str, name: str, event_title: str) -> None:
        """Confirm that a join request was received and awaits approval."""
        pass

    @abstractmethod
    async def send_approval_email(self, to: str, name: str, event_title: str) -> None:
        """Tell the participant they are confirmed for the event."""
        pass

    @abstractmethod
    async def send_rejection_email(
        self, to: str, name: str, event_title: str, reason: Optional[str] = None
    ) -> None:
        """Tell the participant their join request was not approved."""
        pass

    @abstractmethod
    async def send_removal_email(
        self, to: str, name: str, event_title: str, reason: Optional[str] = None
    ) -> None:
        """Tell the participant an admin removed them from the event."""
        pass
