"""
Loyalty points ledger.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.core.database import Base
from orderflow.core.utils import utcnow


class PointsTransactionType(str, Enum):
    PURCHASE_REWARD = "PURCHASE_REWARD"
    CHECKOUT_REDEMPTION = "CHECKOUT_REDEMPTION"
    REVIEW_REWARD = "REVIEW_REWARD"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class PointsTransaction(Base):
    """
    Append-only points movement. Positive amounts are awards, negative are
    redemptions. The balance itself lives on ``Customer.loyalty_points``.
    """

    __tablename__ = "points_transactions"
    __table_args__ = (
        # A replayed award for the same order cannot double-book
        UniqueConstraint("customer_id", "type", "reference_id", name="uq_points_customer_type_ref"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        index=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
