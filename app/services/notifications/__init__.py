"""
Outgoing email

The only message the POS sends is the password reset link. Development
keeps messages in the mock's outbox; staging and production send them
through SendGrid.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    render_password_reset,
)
from app.services.notifications.mock import MockNotificationService
from app.services.notifications.real import RealNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    settings = get_settings()

    service: BaseNotificationService
    if settings.use_real_services:
        service = RealNotificationService()
    else:
        service = MockNotificationService()

    logger.info(f"Notification Service: {service.provider_name} ({settings.env_mode.value} mode)")
    return service


def reset_notification_service() -> None:
    get_notification_service.cache_clear()


__all__ = [
    "get_notification_service",
    "reset_notification_service",
    "render_password_reset",
    "BaseNotificationService",
    "NotificationResult",
    "MockNotificationService",
    "RealNotificationService",
]
