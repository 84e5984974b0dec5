"""Contact notification emails sent through the Resend HTTP API."""

import html
import logging
from typing import Optional

import httpx

from .config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends notification emails; a missing API key turns every send into a logged no-op."""

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.api_url = api_url or settings.RESEND_API_URL
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and settings.FROM_EMAIL and settings.TO_EMAIL)

    @staticmethod
    def build_contact_email(name: str, email: str, subject: Optional[str], message: str) -> dict:
        """Resend payload for a new contact message."""
        subject_line = f"Portfolio Contact: {subject}" if subject else "New Portfolio Contact Message"
        body = html.escape(message).replace("\n", "<br>")
        return {
            "from": settings.FROM_EMAIL,
            "to": [settings.TO_EMAIL],
            "reply_to": email,
            "subject": subject_line,
            "html": (
                "<h2>New Contact Form Submission</h2>"
                f"<p><strong>Name:</strong> {html.escape(name)}</p>"
                f"<p><strong>Email:</strong> {html.escape(email)}</p>"
                f"<p><strong>Subject:</strong> {html.escape(subject or 'No subject')}</p>"
                f"<p><strong>Message:</strong></p><p>{body}</p>"
            ),
        }

    async def send_contact_notification(self, name: str, email: str, subject: Optional[str], message: str) -> bool:
        """Fire-and-forget notification; failures are logged, never raised."""
        if not self.configured:
            logger.info("Email not configured, skipping contact notification")
            return False

        payload = self.build_contact_email(name, email, subject, message)
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send contact notification email: {e}")
            return False

        logger.info(f"📧 Contact notification sent for message from {email}")
        return True


email_service = EmailService()
