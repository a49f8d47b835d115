"""
Order model - one customer purchase intent with its line items.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.core.database import Base, JsonType
from orderflow.core.utils import utcnow

if TYPE_CHECKING:
    from orderflow.models.customer import Customer
    from orderflow.models.payment import Payment


class OrderStatus(str, Enum):
    """Order lifecycle states. Allowed moves live in services.order_state."""

    PENDING = "pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    CONFIRMED = "confirmed"
    PRINTING = "printing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CancellationReason(str, Enum):
    CUSTOMER_REQUEST = "CUSTOMER_REQUEST"
    CHECKOUT_EXPIRED = "CHECKOUT_EXPIRED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    ADMIN_CANCELLED = "ADMIN_CANCELLED"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    OTHER = "OTHER"


class Order(Base):
    """Customer order. Cancellation and refund are status moves, never deletes."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_orders_total_non_negative"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        index=True,
    )

    # Financial
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    promo_code: Mapped[Optional[str]] = mapped_column(String(64))
    points_used: Mapped[Optional[int]] = mapped_column(Integer)
    points_discount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="GBP")

    shipping_address: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)

    # Status
    status: Mapped[str] = mapped_column(
        String(32),
        default=OrderStatus.PENDING.value,
        index=True,
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(64))
    cancellation_notes: Mapped[Optional[str]] = mapped_column(Text)

    share_token: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Relationships
    customer: Mapped["Customer"] = relationship("Customer", lazy="selectin")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )
    payment: Mapped[Optional["Payment"]] = relationship(
        "Payment",
        back_populates="order",
        uselist=False,
        lazy="selectin",
    )

    @property
    def reference(self) -> str:
        """Short human-facing order reference."""
        return str(self.id)[:8].upper()

    def __repr__(self) -> str:
        return f"<Order {self.reference} {self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[Optional[str]] = mapped_column(String(64))
    design_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("designs.id"))
    category_id: Mapped[Optional[str]] = mapped_column(String(64))
    subcategory_id: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(String(255))

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    customization: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
