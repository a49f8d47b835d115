"""
Services package for business logic layer.
"""
from orderflow.services.accounting import AccountingService
from orderflow.services.loyalty_ledger import LoyaltyLedger
from orderflow.services.notification_service import NotificationService
from orderflow.services.order_transactions import OrderTransactionManager
from orderflow.services.payment_events import PaymentEventProcessor, WebhookOutcome
from orderflow.services.promo_ledger import PromoLedger, RejectionReason
from orderflow.services.recovery import RecoveryService

__all__ = [
    "AccountingService",
    "LoyaltyLedger",
    "NotificationService",
    "OrderTransactionManager",
    "PaymentEventProcessor",
    "PromoLedger",
    "RecoveryService",
    "RejectionReason",
    "WebhookOutcome",
]
