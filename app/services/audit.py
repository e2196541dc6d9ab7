"""Audit trail for payment-affecting actions."""

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.replay import client_ip
from app.models import AuditLog

logger = logging.getLogger(__name__)


async def record_audit(
    db: AsyncSession,
    action: str,
    entity: str,
    entity_id: Any = None,
    *,
    old_value: Optional[dict[str, Any]] = None,
    new_value: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
    user_id: Optional[int] = None,
) -> AuditLog:
    """
    Add an audit entry to the caller's transaction.

    The caller commits; an entry never outlives a rolled-back change.
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_value=jsonable_encoder(old_value) if old_value is not None else None,
        new_value=jsonable_encoder(new_value) if new_value is not None else None,
        ip_address=client_ip(request) if request is not None else None,
        user_agent=(request.headers.get("user-agent") or "")[:255] if request is not None else None,
    )
    db.add(entry)
    await db.flush()

    logger.info(f"Audit {action} {entity}#{entry.entity_id}")
    return entry
