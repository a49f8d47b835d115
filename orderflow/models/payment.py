"""
Payment model - the gateway-side record of an order's payment.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.core.database import Base, JsonType
from orderflow.core.utils import utcnow

if TYPE_CHECKING:
    from orderflow.models.accounting import Invoice
    from orderflow.models.order import Order


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Payment(Base):
    """At most one payment per order (unique ``order_id``)."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="GBP")
    payment_method: Mapped[str] = mapped_column(String(32), default="CARD")
    status: Mapped[str] = mapped_column(String(16), default=PaymentStatus.PENDING.value, index=True)

    gateway_payment_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    gateway_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType)

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="payment")
    invoice: Mapped[Optional["Invoice"]] = relationship(
        "Invoice",
        primaryjoin="Payment.order_id == foreign(Invoice.order_id)",
        uselist=False,
        viewonly=True,
    )

    @property
    def invoice_number(self) -> Optional[str]:
        return self.invoice.invoice_number if self.invoice is not None else None

    def __repr__(self) -> str:
        return f"<Payment {self.order_id} {self.status}>"
