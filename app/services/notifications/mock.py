"""
Mock Notification Service

Nothing leaves the process: each email is logged and appended to
`outbox`, where a developer (or a test) can pick up the reset link.
"""

import asyncio
import logging
import random
import uuid
from typing import Any, Optional

from app.core.config import get_settings
from app.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    render_password_reset,
)

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """In-memory email for development."""

    def __init__(self, failure_rate: float = 0.0, max_latency: float = 0.0):
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.outbox: list[dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def messages_to(self, email: str) -> list[dict[str, Any]]:
        return [m for m in self.outbox if m["to"] == email]

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
        **meta: Any,
    ) -> NotificationResult:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(0, self.max_latency))

        if random.random() < self.failure_rate:
            logger.warning(f"Mock email to {to_email} dropped (simulated failure)")
            return NotificationResult(success=False, error_message="Simulated email failure", provider="mock")

        message_id = f"email_mock_{uuid.uuid4().hex[:12]}"
        self.outbox.append({
            "id": message_id,
            "to": to_email,
            "subject": subject,
            "text": body_text or body_html,
            **meta,
        })
        logger.info(f"Mock email {message_id} to {to_email}: {subject}")
        return NotificationResult(success=True, message_id=message_id, provider="mock")

    async def send_password_reset(
        self,
        to_email: str,
        name: str,
        reset_url: str,
    ) -> NotificationResult:
        logger.info(f"Password reset link for {to_email}: {reset_url}")
        subject, body_html, body_text = render_password_reset(name, reset_url, get_settings().app_name)
        return await self.send_email(to_email, subject, body_html, body_text, reset_url=reset_url)

    async def health_check(self) -> bool:
        return True
