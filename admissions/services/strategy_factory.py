"""
Email gateway factory.
Configures which email gateway the notification dispatcher uses.
"""

from typing import Optional

from admissions.core.config import get_settings
from admissions.core.logging import get_logger
from admissions.services.interfaces.email_gateway import EmailGateway
from admissions.services.interfaces.log_email_gateway import LoggingEmailGateway

logger = get_logger(__name__)
settings = get_settings()


def get_email_gateway_strategy() -> EmailGateway:
    """
    Get configured email gateway.

    Selected by the EMAIL_BACKEND setting. "log" is the only built-in
    backend; unknown values fall back to it.
    """
    backend = settings.EMAIL_BACKEND

    if backend != "log":
        logger.warning("unknown_email_backend", backend=backend, fallback="log")
    return LoggingEmailGateway()


# Singleton instance
_gateway: Optional[EmailGateway] = None


def get_email_gateway() -> EmailGateway:
    """Get email gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = get_email_gateway_strategy()
    return _gateway
