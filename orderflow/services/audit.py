"""
Audit trail writer.
"""
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.database import SessionFactory
from orderflow.core.logging import get_logger
from orderflow.models.audit import ActorType, AuditLog

logger = get_logger(__name__)


def add_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    entity_type: str,
    entity_id: Optional[Any] = None,
    actor_type: ActorType = ActorType.SYSTEM,
    actor_id: Optional[Any] = None,
    previous_state: Optional[dict[str, Any]] = None,
    new_state: Optional[dict[str, Any]] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction."""
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        actor_type=actor_type.value,
        actor_id=str(actor_id) if actor_id is not None else None,
        previous_state=previous_state,
        new_state=new_state,
        extra=metadata,
    )
    session.add(entry)
    return entry


async def record_audit(session_factory: SessionFactory, **entry: Any) -> bool:
    """
    Write an audit row in its own transaction. Best-effort: a failure is
    logged and reported as ``False``.
    """
    try:
        async with session_factory() as session:
            async with session.begin():
                add_audit_entry(session, **entry)
        return True
    except Exception:
        logger.exception("Audit log write failed", action=entry.get("action"))
        return False
