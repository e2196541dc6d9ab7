"""
SendGrid Notification Service

Used in staging and production. Email is never allowed to fail the
request that triggered it: when SendGrid is not configured, rejects the
message or cannot be reached, the message goes to the mock outbox and
the problem is logged.
"""

import asyncio
import logging
from typing import Optional

from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.core.config import get_settings
from app.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    render_password_reset,
)
from app.services.notifications.mock import MockNotificationService

logger = logging.getLogger(__name__)

ACCEPTED_STATUS_CODES = {200, 201, 202}


class RealNotificationService(BaseNotificationService):
    """Email through the SendGrid v3 API."""

    def __init__(self):
        settings = get_settings()
        self.app_name = settings.app_name
        self.from_email = settings.sendgrid_from_email
        self.client: Optional[SendGridAPIClient] = None

        if settings.sendgrid_api_key:
            self.client = SendGridAPIClient(settings.sendgrid_api_key)
        else:
            logger.warning("SENDGRID_API_KEY not set, emails will only be logged")

        self.fallback = MockNotificationService()

    @property
    def provider_name(self) -> str:
        return "sendgrid"

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        if self.client is None:
            return await self.fallback.send_email(to_email, subject, body_html, body_text)

        message = Mail(
            from_email=self.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=body_html,
            plain_text_content=body_text,
        )

        try:
            response = await asyncio.to_thread(self.client.send, message)
        except (HTTPError, OSError) as e:
            logger.error(f"SendGrid rejected email to {to_email}: {e}")
            return await self.fallback.send_email(to_email, subject, body_html, body_text)

        if response.status_code not in ACCEPTED_STATUS_CODES:
            logger.error(f"SendGrid returned {response.status_code} for email to {to_email}")
            return await self.fallback.send_email(to_email, subject, body_html, body_text)

        logger.info(f"Email sent to {to_email} ({response.status_code})")
        return NotificationResult(
            success=True,
            message_id=response.headers.get("X-Message-Id"),
            provider="sendgrid",
        )

    async def send_password_reset(
        self,
        to_email: str,
        name: str,
        reset_url: str,
    ) -> NotificationResult:
        subject, body_html, body_text = render_password_reset(name, reset_url, self.app_name)
        return await self.send_email(to_email, subject, body_html, body_text)

    async def health_check(self) -> bool:
        return self.client is not None
