"""
Payment Event Processor - reconciles payment gateway webhooks with orders.

Delivery is at-least-once and unordered, so every event goes through the
same protocol:

1. Look up the event id in ``processed_webhook_events``; if present the
   event is a duplicate and nothing else happens.
2. Insert the marker as the first write of the event transaction. A
   concurrent delivery of the same event fails on the primary key.
3. Apply the critical state change (order status, payment row) behind a
   status guard, then commit it together with the marker.
4. After commit, run the best-effort side effects (accounting, invoice,
   loyalty award, audit). Each one is isolated and can only log.

An event that cannot be matched to local state raises
``ReconciliationError``; the transaction, marker included, rolls back so the
gateway's retry gets processed once the data is there.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.database import SessionFactory
from orderflow.core.exceptions import ReconciliationError, ValidationError
from orderflow.core.logging import get_logger
from orderflow.core.utils import to_money, utcnow
from orderflow.models.audit import ActorType
from orderflow.models.cancellation import CancellationRequest, CancellationRequestStatus
from orderflow.models.order import CancellationReason, Order, OrderStatus
from orderflow.models.payment import PaymentStatus
from orderflow.models.resolution import IssueResolution, ResolutionStatus
from orderflow.models.webhook import ProcessedWebhookEvent
from orderflow.repositories.order import OrderRepository
from orderflow.repositories.payment import PaymentRepository
from orderflow.services.accounting import AccountingService
from orderflow.services.audit import record_audit
from orderflow.services.loyalty_ledger import LoyaltyLedger
from orderflow.services.order_state import can_transition, is_already_paid, is_terminal

logger = get_logger(__name__)

SideEffect = Callable[[], Awaitable[Any]]


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    NOOP = "noop"
    NOT_PAID = "not_paid"
    IGNORED = "ignored"


@dataclass
class EventContext:
    """Per-event state handed to a handler."""

    event_id: str
    event_type: str
    data: dict[str, Any]
    effects: list[tuple[str, SideEffect]] = field(default_factory=list)

    def after_commit(self, name: str, effect: SideEffect) -> None:
        self.effects.append((name, effect))


def from_minor_units(amount: Optional[int]) -> Optional[Decimal]:
    """Gateway amounts are integers in pence."""
    if amount is None:
        return None
    return to_money(Decimal(amount) / 100)


def order_reference(data: dict[str, Any]) -> Optional[UUID]:
    """Order id from event metadata, falling back to client_reference_id."""
    metadata = data.get("metadata") or {}
    raw = metadata.get("orderId") or metadata.get("order_id") or data.get("client_reference_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


class PaymentEventProcessor:
    def __init__(
        self,
        session_factory: SessionFactory,
        accounting: Optional[AccountingService] = None,
    ) -> None:
        self.session_factory = session_factory
        self.accounting = accounting or AccountingService(session_factory)
        self._handlers: dict[str, Callable[[AsyncSession, EventContext], Awaitable[WebhookOutcome]]] = {
            "checkout.session.completed": self._checkout_completed,
            "checkout.session.expired": self._checkout_expired,
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "charge.refunded": self._charge_refunded,
        }

    async def process(self, event: dict[str, Any]) -> WebhookOutcome:
        """
        Apply one verified gateway event.

        Raises:
            ValidationError: event has no id/type
            ReconciliationError: event references unknown local state
        """
        event_id = event.get("id")
        event_type = event.get("type")
        if not event_id or not event_type:
            raise ValidationError("Malformed webhook event")

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled webhook event type", event_id=event_id, event_type=event_type)
            return WebhookOutcome.IGNORED

        ctx = EventContext(
            event_id=event_id,
            event_type=event_type,
            data=(event.get("data") or {}).get("object") or {},
        )

        with structlog.contextvars.bound_contextvars(event_id=event_id, event_type=event_type):
            try:
                outcome = await self._apply(handler, ctx)
            except ReconciliationError as e:
                logger.error("Webhook reconciliation failed", error=e.message, **e.details)
                await record_audit(
                    self.session_factory,
                    action="WEBHOOK_RECONCILIATION_FAILED",
                    entity_type="WEBHOOK",
                    entity_id=event_id,
                    actor_type=ActorType.WEBHOOK,
                    metadata={"event_type": event_type, "error": e.message, **e.details},
                )
                raise

            logger.info("Webhook processed", outcome=outcome.value)
            if outcome == WebhookOutcome.PROCESSED:
                await self._run_effects(ctx)
            return outcome

    async def _apply(self, handler, ctx: EventContext) -> WebhookOutcome:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    if await session.get(ProcessedWebhookEvent, ctx.event_id) is not None:
                        logger.info("Duplicate webhook delivery")
                        return WebhookOutcome.DUPLICATE

                    session.add(ProcessedWebhookEvent(event_id=ctx.event_id, event_type=ctx.event_type))
                    await session.flush()

                    return await handler(session, ctx)
        except IntegrityError:
            if await self._already_recorded(ctx.event_id):
                logger.info("Concurrent duplicate webhook delivery")
                ctx.effects.clear()
                return WebhookOutcome.DUPLICATE
            raise

    async def _already_recorded(self, event_id: str) -> bool:
        async with self.session_factory() as session:
            return await session.get(ProcessedWebhookEvent, event_id) is not None

    async def _run_effects(self, ctx: EventContext) -> None:
        for name, effect in ctx.effects:
            try:
                await effect()
            except Exception:
                logger.exception("Webhook side effect failed", effect=name)

    async def _load_order(self, session: AsyncSession, order_id: Optional[UUID], ctx: EventContext) -> Order:
        if order_id is None:
            raise ReconciliationError(
                "Webhook event has no order reference",
                gateway_object=ctx.data.get("id"),
            )
        order = await session.get(Order, order_id)
        if order is None:
            raise ReconciliationError("Order not found for webhook event", order_id=str(order_id))
        return order

    async def _award_points(self, customer_id: UUID, order_id: UUID, amount: Decimal) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                return await LoyaltyLedger(session).award(customer_id, order_id, amount)

    def _audit(self, ctx: EventContext, action: str, order: Order, previous: str) -> SideEffect:
        return partial(
            record_audit,
            self.session_factory,
            action=action,
            entity_type="ORDER",
            entity_id=order.id,
            actor_type=ActorType.WEBHOOK,
            actor_id=ctx.event_id,
            previous_state={"status": previous},
            new_state={"status": order.status},
            metadata={"event_type": ctx.event_type},
        )

    async def _checkout_completed(self, session: AsyncSession, ctx: EventContext) -> WebhookOutcome:
        data = ctx.data
        if data.get("payment_status") != "paid":
            logger.info("Checkout completed but not paid", payment_status=data.get("payment_status"))
            return WebhookOutcome.NOT_PAID

        order = await self._load_order(session, order_reference(data), ctx)
        previous = order.status
        if is_already_paid(previous) or is_terminal(previous):
            logger.info("Order already past payment, skipping", order_id=str(order.id), status=previous)
            return WebhookOutcome.NOOP

        moved = await OrderRepository(session).compare_and_set_status(
            order, previous, OrderStatus.PAYMENT_CONFIRMED.value
        )
        if not moved:
            return WebhookOutcome.NOOP

        amount = from_minor_units(data.get("amount_total")) or to_money(order.total_price)
        await PaymentRepository(session).upsert_for_order(
            order.id,
            amount=amount,
            currency=(data.get("currency") or order.currency).upper(),
            payment_method="CARD",
            status=PaymentStatus.COMPLETED.value,
            gateway_payment_id=data.get("payment_intent") or data.get("id"),
            paid_at=utcnow(),
            gateway_response={
                "session_id": data.get("id"),
                "payment_status": data.get("payment_status"),
                "amount_total": data.get("amount_total"),
                "currency": data.get("currency"),
                "customer_email": (data.get("customer_details") or {}).get("email"),
            },
        )
        logger.info("Order payment confirmed", order_id=str(order.id), amount=str(amount))

        ctx.after_commit("accounting", partial(self.accounting.run_after_payment_confirmed, order.id))
        ctx.after_commit("loyalty_award", partial(self._award_points, order.customer_id, order.id, amount))
        ctx.after_commit("audit", self._audit(ctx, "PAYMENT_CONFIRMED", order, previous))
        return WebhookOutcome.PROCESSED

    async def _checkout_expired(self, session: AsyncSession, ctx: EventContext) -> WebhookOutcome:
        order = await self._load_order(session, order_reference(ctx.data), ctx)
        previous = order.status
        if previous != OrderStatus.PENDING.value:
            logger.info("Checkout expired after order moved on", order_id=str(order.id), status=previous)
            return WebhookOutcome.NOOP

        moved = await OrderRepository(session).compare_and_set_status(
            order,
            previous,
            OrderStatus.CANCELLED.value,
            cancellation_reason=CancellationReason.CHECKOUT_EXPIRED.value,
            cancelled_at=utcnow(),
        )
        if not moved:
            return WebhookOutcome.NOOP

        payment = await PaymentRepository(session).get_by_order_id(order.id)
        if payment is not None and payment.status == PaymentStatus.PENDING.value:
            payment.status = PaymentStatus.FAILED.value

        logger.info("Order cancelled after checkout expiry", order_id=str(order.id))
        ctx.after_commit("audit", self._audit(ctx, "ORDER_CANCELLED", order, previous))
        return WebhookOutcome.PROCESSED

    async def _payment_succeeded(self, session: AsyncSession, ctx: EventContext) -> WebhookOutcome:
        """Advisory only: checkout.session.completed confirms orders."""
        order_id = order_reference(ctx.data)
        if order_id is None:
            logger.info("Payment succeeded without order reference, ignoring", payment_intent=ctx.data.get("id"))
            return WebhookOutcome.IGNORED

        payment = await PaymentRepository(session).get_by_order_id(order_id)
        if payment is None:
            logger.info("Payment succeeded before checkout completion", order_id=str(order_id))
            return WebhookOutcome.IGNORED

        payment.gateway_payment_id = ctx.data.get("id") or payment.gateway_payment_id
        if payment.status in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
            payment.status = PaymentStatus.COMPLETED.value
            payment.paid_at = payment.paid_at or utcnow()
        return WebhookOutcome.PROCESSED

    async def _payment_failed(self, session: AsyncSession, ctx: EventContext) -> WebhookOutcome:
        data = ctx.data
        payments = PaymentRepository(session)

        order_id = order_reference(data)
        if order_id is None and data.get("id"):
            known = await payments.get_by_gateway_id(data["id"])
            order_id = known.order_id if known else None
        order = await self._load_order(session, order_id, ctx)

        previous = order.status
        if is_already_paid(previous) or previous == OrderStatus.REFUNDED.value:
            logger.info("Payment failure for an already paid order, ignoring", order_id=str(order.id))
            return WebhookOutcome.NOOP

        error = data.get("last_payment_error") or {}
        await payments.upsert_for_order(
            order.id,
            amount=from_minor_units(data.get("amount")) or to_money(order.total_price),
            currency=(data.get("currency") or order.currency).upper(),
            status=PaymentStatus.FAILED.value,
            gateway_payment_id=data.get("id"),
            gateway_response={
                "message": error.get("message"),
                "code": error.get("code"),
                "decline_code": error.get("decline_code"),
            },
        )
        logger.info("Payment failed", order_id=str(order.id), decline_code=error.get("decline_code"))

        if previous == OrderStatus.PENDING.value:
            await OrderRepository(session).compare_and_set_status(
                order,
                previous,
                OrderStatus.CANCELLED.value,
                cancellation_reason=CancellationReason.PAYMENT_FAILED.value,
                cancellation_notes=error.get("message"),
                cancelled_at=utcnow(),
            )

        ctx.after_commit("audit", self._audit(ctx, "PAYMENT_FAILED", order, previous))
        return WebhookOutcome.PROCESSED

    async def _charge_refunded(self, session: AsyncSession, ctx: EventContext) -> WebhookOutcome:
        data = ctx.data
        gateway_id = data.get("payment_intent") or data.get("id")
        payment = await PaymentRepository(session).get_by_gateway_id(gateway_id) if gateway_id else None
        if payment is None:
            raise ReconciliationError("Payment not found for refunded charge", gateway_payment_id=gateway_id)

        if payment.status == PaymentStatus.REFUNDED.value:
            logger.info("Payment already refunded", order_id=str(payment.order_id))
            return WebhookOutcome.NOOP

        now = utcnow()
        payment.status = PaymentStatus.REFUNDED.value
        payment.refunded_at = now

        order = await self._load_order(session, payment.order_id, ctx)
        previous = order.status
        if can_transition(previous, OrderStatus.REFUNDED):
            await OrderRepository(session).compare_and_set_status(order, previous, OrderStatus.REFUNDED.value)
        else:
            logger.warning("Order status preserved on refund", order_id=str(order.id), status=previous)

        await session.execute(
            update(IssueResolution)
            .where(
                IssueResolution.order_id == order.id,
                IssueResolution.status == ResolutionStatus.AWAITING_REFUND.value,
            )
            .values(status=ResolutionStatus.COMPLETED.value, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        # A refund issued straight from the gateway settles any open request
        await session.execute(
            update(CancellationRequest)
            .where(
                CancellationRequest.order_id == order.id,
                CancellationRequest.status == CancellationRequestStatus.PENDING.value,
            )
            .values(status=CancellationRequestStatus.APPROVED.value, reviewed_at=now)
            .execution_options(synchronize_session=False)
        )

        refunded = from_minor_units(data.get("amount_refunded")) or to_money(payment.amount)
        logger.info("Payment refunded", order_id=str(order.id), amount=str(refunded))

        ctx.after_commit(
            "accounting",
            partial(self.accounting.run_after_refund, order.id, refunded, "Gateway refund"),
        )
        ctx.after_commit("audit", self._audit(ctx, "PAYMENT_REFUNDED", order, previous))
        return WebhookOutcome.PROCESSED
