"""
Log-only email gateway - no transport.
Records every send so deployments without a mail provider still show what
would have gone out.
"""

from typing import Optional

from admissions.core.logging import get_logger
from admissions.services.interfaces.email_gateway import EmailGateway

logger = get_logger(__name__)

DEFAULT_REASON = "No specific reason provided"


class LoggingEmailGateway(EmailGateway):
    """
    Writes one structured log line per email.

    Use when:
    - Development and tests
    - No mail provider is configured
    """

    async def send_pending_email(self, to: str, name: str, event_title: str) -> None:
        logger.info("email_sent", kind="pending", to=to, name=name, event_title=event_title)

    async def send_approval_email(self, to: str, name: str, event_title: str) -> None:
        logger.info("email_sent", kind="approval", to=to, name=name, event_title=event_title)

    async def send_rejection_email(
        self, to: str, name: str, event_title: str, reason: Optional[str] = None
    ) -> None:
        logger.info(
            "email_sent", kind="rejection", to=to, name=name,
            event_title=event_title, reason=reason or DEFAULT_REASON,
        )

    async def send_removal_email(
        self, to: str, name: str, event_title: str, reason: Optional[str] = None
    ) -> None:
        logger.info(
            "email_sent", kind="removal", to=to, name=name,
            event_title=event_title, reason=reason or DEFAULT_REASON,
        )
