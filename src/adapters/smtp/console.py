"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging confirmation links to stdout for demo purposes.
"""

import logging
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints confirmation links to stdout.
    """

    def __init__(self, link_base_url: str = "http://localhost:8000/v1/confirm-email") -> None:
        self._link_base_url = link_base_url.rstrip("/")

    def confirmation_link(self, token: str) -> str:
        """Build the link a user follows to confirm their email."""
        return f"{self._link_base_url}?{urlencode({'token': token})}"

    def send_confirmation_email(self, email: str, token: str) -> None:
        """
        Log the confirmation link to console (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        The link is logged at INFO level to be visible in docker-compose logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            token: Email confirmation token
        """
        logger.info("[CONFIRMATION] Email: %s Link: %s", email, self.confirmation_link(token))
