"""
Order Pydantic schemas for request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.order import CancellationReason, OrderStatus


class OrderItemInput(BaseModel):
    """One cart line submitted at checkout."""

    product_id: str = Field(..., min_length=1, max_length=64, alias="productId")
    variant_id: Optional[str] = Field(None, max_length=64, alias="variantId")
    design_id: Optional[UUID] = Field(None, alias="designId")
    category_id: Optional[str] = Field(None, alias="categoryId")
    subcategory_id: Optional[str] = Field(None, alias="subcategoryId")
    description: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(..., ge=1, le=1000)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, alias="unitPrice")
    customization: Optional[dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=128)
    postcode: str = Field(..., min_length=1, max_length=16)
    country: str = Field("GB", min_length=2, max_length=2)


class CheckoutRequest(BaseModel):
    """
    Storefront checkout submission.

    Totals are always recomputed server-side from ``items``.
    """

    items: list[OrderItemInput]
    shipping_address: ShippingAddress = Field(alias="shippingAddress")
    promo_code: Optional[str] = Field(None, max_length=64, alias="promoCode")
    points_to_redeem: Optional[int] = Field(None, ge=0, alias="pointsToRedeem")
    shipping_cost: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2, alias="shippingCost")
    tax_amount: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2, alias="taxAmount")

    model_config = ConfigDict(populate_by_name=True)


class OrderItemResponse(BaseModel):
    id: UUID
    product_id: str = Field(alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    design_id: Optional[UUID] = Field(None, alias="designId")
    description: Optional[str] = None
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    total_price: Decimal = Field(alias="totalPrice")
    customization: Optional[dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaymentSummary(BaseModel):
    status: str
    amount: Decimal
    currency: str
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    refunded_at: Optional[datetime] = Field(None, alias="refundedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    id: UUID
    reference: str
    customer_id: UUID = Field(alias="customerId")
    status: OrderStatus
    subtotal: Decimal
    discount_amount: Decimal = Field(alias="discountAmount")
    promo_code: Optional[str] = Field(None, alias="promoCode")
    points_used: Optional[int] = Field(None, alias="pointsUsed")
    points_discount: Optional[Decimal] = Field(None, alias="pointsDiscount")
    shipping_cost: Decimal = Field(alias="shippingCost")
    tax_amount: Decimal = Field(alias="taxAmount")
    total_price: Decimal = Field(alias="totalPrice")
    currency: str
    shipping_address: dict[str, Any] = Field(alias="shippingAddress")
    share_token: str = Field(alias="shareToken")
    cancellation_reason: Optional[str] = Field(None, alias="cancellationReason")
    items: list[OrderItemResponse]
    payment: Optional[PaymentSummary] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    cancelled_at: Optional[datetime] = Field(None, alias="cancelledAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OrderTrackingResponse(BaseModel):
    """Public view of an order, reachable by share token."""

    reference: str
    status: OrderStatus
    item_count: int = Field(alias="itemCount")
    total_price: Decimal = Field(alias="totalPrice")
    currency: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class PaginatedOrdersResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int = Field(alias="pageSize")
    has_more: bool = Field(alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)


class CancelOrderRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    """Admin fulfilment transition."""

    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)


class CancellationRequestCreate(BaseModel):
    """Customer request to cancel a paid order."""

    reason: CancellationReason
    notes: Optional[str] = Field(None, max_length=1000)


class CancellationReviewRequest(BaseModel):
    action: Literal["APPROVE", "REJECT"]
    notes: Optional[str] = Field(None, max_length=1000)


class CancellationRequestResponse(BaseModel):
    id: UUID
    order_id: UUID = Field(alias="orderId")
    reason: str
    notes: Optional[str] = None
    status: str
    previous_status: OrderStatus = Field(alias="previousStatus")
    reviewed_at: Optional[datetime] = Field(None, alias="reviewedAt")
    review_notes: Optional[str] = Field(None, alias="reviewNotes")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CancellationReviewResponse(BaseModel):
    request: CancellationRequestResponse
    order_status: OrderStatus = Field(alias="orderStatus")
    awaiting_refund: bool = Field(alias="awaitingRefund")

    model_config = ConfigDict(populate_by_name=True)
