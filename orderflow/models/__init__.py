"""
SQLAlchemy models package.
All models are imported here so ``init_db`` registers every table.
"""
from orderflow.models.accounting import (
    Income,
    IncomeEntryType,
    IncomeStatus,
    Invoice,
    InvoiceStatus,
)
from orderflow.models.audit import ActorType, AuditLog
from orderflow.models.cancellation import CancellationRequest, CancellationRequestStatus
from orderflow.models.customer import CartItem, Customer, Design
from orderflow.models.loyalty import PointsTransaction, PointsTransactionType
from orderflow.models.order import CancellationReason, Order, OrderItem, OrderStatus
from orderflow.models.payment import Payment, PaymentStatus
from orderflow.models.promo import DiscountType, Promo, PromoScope, PromoUsage
from orderflow.models.recovery import CampaignStatus, RecoveryCampaign
from orderflow.models.resolution import IssueResolution, ResolutionStatus, ResolutionType
from orderflow.models.webhook import ProcessedWebhookEvent

__all__ = [
    # Customers
    "Customer",
    "Design",
    "CartItem",
    # Orders & payments
    "Order",
    "OrderItem",
    "OrderStatus",
    "CancellationReason",
    "Payment",
    "PaymentStatus",
    "CancellationRequest",
    "CancellationRequestStatus",
    # Promos & loyalty
    "Promo",
    "PromoUsage",
    "DiscountType",
    "PromoScope",
    "PointsTransaction",
    "PointsTransactionType",
    # Accounting
    "Income",
    "IncomeStatus",
    "IncomeEntryType",
    "Invoice",
    "InvoiceStatus",
    # Webhooks, resolutions, recovery, audit
    "ProcessedWebhookEvent",
    "IssueResolution",
    "ResolutionStatus",
    "ResolutionType",
    "RecoveryCampaign",
    "CampaignStatus",
    "AuditLog",
    "ActorType",
]
