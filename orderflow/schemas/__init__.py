"""
Pydantic schemas package.
"""
from orderflow.schemas.loyalty import PointsSummaryResponse, PointsTransactionResponse
from orderflow.schemas.order import (
    CancellationRequestCreate,
    CancellationRequestResponse,
    CancellationReviewRequest,
    CancellationReviewResponse,
    CancelOrderRequest,
    CheckoutRequest,
    OrderItemInput,
    OrderItemResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderTrackingResponse,
    PaginatedOrdersResponse,
    PaymentSummary,
    ShippingAddress,
)
from orderflow.schemas.payment import (
    PaginatedPaymentsResponse,
    PaymentOrderSummary,
    PaymentResponse,
    WebhookResponse,
)
from orderflow.schemas.promo import PromoValidateRequest, PromoValidateResponse

__all__ = [
    # Orders
    "CheckoutRequest",
    "OrderItemInput",
    "ShippingAddress",
    "OrderItemResponse",
    "PaymentSummary",
    "OrderResponse",
    "OrderTrackingResponse",
    "PaginatedOrdersResponse",
    "CancelOrderRequest",
    "OrderStatusUpdate",
    "CancellationRequestCreate",
    "CancellationRequestResponse",
    "CancellationReviewRequest",
    "CancellationReviewResponse",
    # Payments
    "PaymentResponse",
    "PaymentOrderSummary",
    "PaginatedPaymentsResponse",
    # Promos
    "PromoValidateRequest",
    "PromoValidateResponse",
    # Loyalty
    "PointsSummaryResponse",
    "PointsTransactionResponse",
    # Webhooks
    "WebhookResponse",
]
