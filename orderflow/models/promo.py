"""
Promo models - discount code definitions and their append-only usage ledger.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.core.database import Base, JsonType
from orderflow.core.utils import utcnow


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PromoScope(str, Enum):
    ALL_PRODUCTS = "ALL_PRODUCTS"
    CATEGORY = "CATEGORY"
    SUBCATEGORY = "SUBCATEGORY"
    SPECIFIC_PRODUCTS = "SPECIFIC_PRODUCTS"


class Promo(Base):
    """Discount code with a usage budget and an optional validity window."""

    __tablename__ = "promos"
    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="ck_promos_uses_within_budget",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    # Stored upper-cased
    code: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[Optional[str]] = mapped_column(Text)

    discount_type: Mapped[str] = mapped_column(String(16), default=DiscountType.PERCENTAGE.value)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    scope: Mapped[str] = mapped_column(String(32), default=PromoScope.ALL_PRODUCTS.value)
    category_id: Mapped[Optional[str]] = mapped_column(String(64))
    subcategory_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_ids: Mapped[list[str]] = mapped_column(JsonType, default=list)

    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # NULL = unlimited; 0 per user = unlimited
    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    max_uses_per_user: Mapped[int] = mapped_column(Integer, default=1)
    current_uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_order_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<Promo {self.code}>"


class PromoUsage(Base):
    """One redemption of a promo by one order. Never mutated."""

    __tablename__ = "promo_usages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    promo_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("promos.id", ondelete="RESTRICT"),
        index=True,
    )
    customer_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("customers.id"), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    order_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="RESTRICT"),
        unique=True,
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
