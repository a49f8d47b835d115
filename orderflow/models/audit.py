"""
Operator-visible audit trail.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.core.database import Base, JsonType
from orderflow.core.utils import utcnow


class ActorType(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"
    WEBHOOK = "WEBHOOK"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)

    actor_type: Mapped[str] = mapped_column(String(16), default=ActorType.SYSTEM.value)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64))

    previous_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType)
    new_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType)
    # "metadata" is reserved on declarative classes
    extra: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JsonType)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
