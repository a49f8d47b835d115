"""
Issue resolutions raised against delivered orders (refunds, reprints).
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.core.database import Base
from orderflow.core.utils import utcnow


class ResolutionType(str, Enum):
    REFUND = "REFUND"
    REPRINT = "REPRINT"


class ResolutionStatus(str, Enum):
    PENDING = "PENDING"
    AWAITING_REFUND = "AWAITING_REFUND"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class IssueResolution(Base):
    __tablename__ = "issue_resolutions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("orders.id"), index=True)
    type: Mapped[str] = mapped_column(String(16), default=ResolutionType.REFUND.value)
    status: Mapped[str] = mapped_column(String(32), default=ResolutionStatus.PENDING.value, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
