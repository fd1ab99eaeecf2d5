"""Best-effort audit trail."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import AuditAction, log_audit_event
from database.models.audit import AuditLog

logger = logging.getLogger(__name__)


async def record_audit(
    session: AsyncSession,
    actor_id: Optional[str],
    action: AuditAction,
    payload: Optional[dict[str, Any]] = None,
) -> None:
    """
    Append an audit entry after the audited change has been committed.

    A failed write is rolled back and logged; the change it describes stays.
    """
    payload = payload or {}
    log_audit_event(action, actor_id, payload)

    session.add(AuditLog(actor_id=actor_id, action=action.value, payload=payload))
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception(f"Failed to persist audit entry {action.value}")
