"""
Notification Service Abstract Base Class

Defines the interface for outgoing email (password reset links).
Supports both Mock (development) and Real (SendGrid) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


def render_password_reset(name: str, reset_url: str, app_name: str) -> tuple[str, str, str]:
    """Subject, HTML and text bodies of the password reset email."""
    subject = f"{app_name} - Reset your password"
    body_text = (
        f"Hi {name},\n\n"
        f"Someone requested a password reset for your account.\n"
        f"Open this link to choose a new password:\n{reset_url}\n\n"
        f"If you did not request this, ignore this email."
    )
    body_html = (
        f"<p>Hi {name},</p>"
        f"<p>Someone requested a password reset for your account.</p>"
        f'<p><a href="{reset_url}">Choose a new password</a></p>'
        f"<p>If you did not request this, ignore this email.</p>"
    )
    return subject, body_html, body_text


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def send_password_reset(
        self,
        to_email: str,
        name: str,
        reset_url: str,
    ) -> NotificationResult:
        """Send the password reset link to a user."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
