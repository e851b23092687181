"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .email_gateway import EmailGateway
from .log_email_gateway import LoggingEmailGateway

__all__ = ['EmailGateway', 'LoggingEmailGateway']
