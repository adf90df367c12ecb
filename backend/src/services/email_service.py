"""
Email delivery through the Resend HTTP API.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import RESEND_API_KEY, RESEND_FROM_EMAIL

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class NotificationDeliveryError(Exception):
    """Raised when an email or SMS cannot be delivered."""
    pass


class EmailService:
    """Service for sending transactional emails."""

    @staticmethod
    def is_configured() -> bool:
        return bool(RESEND_API_KEY)

    @staticmethod
    def _deliver(to: str, subject: str, text: str, html: str) -> Dict[str, Any]:
        if not EmailService.is_configured():
            raise NotificationDeliveryError("Resend non configurato")
        if not to:
            raise NotificationDeliveryError("Email destinatario mancante")

        try:
            response = httpx.post(
                RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {RESEND_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": RESEND_FROM_EMAIL,
                    "to": [to],
                    "subject": subject,
                    "text": text,
                    "html": html,
                },
                timeout=10.0,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Resend rejected email to {to}: {e.response.status_code} - {e.response.text}")
            raise NotificationDeliveryError(f"Resend error: {e.response.status_code} {e.response.text}") from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach Resend for email to {to}: {e}")
            raise NotificationDeliveryError(f"Resend error: {e}") from e

        logger.info(f"Email sent to {to}: {subject}")
        return response.json() if response.content else {}

    @staticmethod
    def send_email(to: str, subject: str, text: str) -> Dict[str, Any]:
        """Send a plain message; the HTML part is the text in a paragraph."""
        return EmailService._deliver(to, subject, text, f"<p>{text}</p>")

    @staticmethod
    def send_email_with_html(to: str, subject: str, text: str, html: Optional[str] = None) -> Dict[str, Any]:
        """Send a message with an explicit HTML part."""
        return EmailService._deliver(to, subject, text, html or f"<p>{text}</p>")
