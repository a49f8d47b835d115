"""
Abandoned-cart recovery campaigns. Sending is handled elsewhere; this core
only cancels pending campaigns and records conversions.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.core.database import Base
from orderflow.core.utils import utcnow


class CampaignStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    CONVERTED = "CONVERTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class RecoveryCampaign(Base):
    __tablename__ = "recovery_campaigns"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        index=True,
    )
    promo_code: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(16), default=CampaignStatus.PENDING.value, index=True)

    converted_order_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("orders.id"))
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    order_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
