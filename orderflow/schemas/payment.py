"""
Payment and webhook Pydantic schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.order import OrderStatus
from orderflow.models.payment import PaymentStatus


class PaymentOrderSummary(BaseModel):
    id: UUID
    reference: str
    status: OrderStatus
    total_price: Decimal = Field(alias="totalPrice")
    customer_id: UUID = Field(alias="customerId")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaymentResponse(BaseModel):
    """Schema for payment API responses."""

    id: UUID
    order_id: UUID = Field(alias="orderId")
    amount: Decimal
    currency: str
    payment_method: str = Field(alias="paymentMethod")
    status: PaymentStatus
    gateway_payment_id: Optional[str] = Field(None, alias="gatewayPaymentId")
    invoice_number: Optional[str] = Field(None, alias="invoiceNumber")
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    refunded_at: Optional[datetime] = Field(None, alias="refundedAt")
    created_at: datetime = Field(alias="createdAt")
    order: PaymentOrderSummary

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaginatedPaymentsResponse(BaseModel):
    items: list[PaymentResponse]
    total: int
    page: int
    page_size: int = Field(alias="pageSize")
    has_more: bool = Field(alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)


class WebhookResponse(BaseModel):
    received: bool = True
    outcome: str
