"""
Order Transaction Manager - turns a checkout into a durable order.

The order, its items, the promo redemption and the points debit are written
in one transaction: any rejection leaves no trace. Housekeeping that does
not affect the order (cart, recovery campaigns) runs after commit and can
only log on failure.
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.auth import Principal
from orderflow.core.config import settings
from orderflow.core.database import SessionFactory
from orderflow.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from orderflow.core.logging import get_logger
from orderflow.core.security import generate_share_token
from orderflow.core.utils import to_money, utcnow
from orderflow.models.audit import ActorType
from orderflow.models.customer import Customer
from orderflow.models.order import CancellationReason, Order, OrderItem, OrderStatus
from orderflow.models.payment import PaymentStatus
from orderflow.repositories.customer import CustomerRepository
from orderflow.repositories.order import OrderRepository
from orderflow.repositories.payment import PaymentRepository
from orderflow.schemas.order import CheckoutRequest, OrderItemInput
from orderflow.services.accounting import AccountingService
from orderflow.services.audit import add_audit_entry
from orderflow.services.loyalty_ledger import LoyaltyLedger, points_to_discount
from orderflow.services.order_state import FULFILMENT_TARGETS, ensure_transition
from orderflow.services.promo_ledger import PricedItem, PromoLedger
from orderflow.services.recovery import RecoveryService

logger = get_logger(__name__)


def build_items(lines: list[OrderItemInput]) -> list[OrderItem]:
    return [
        OrderItem(
            position=position,
            product_id=line.product_id,
            variant_id=line.variant_id,
            design_id=line.design_id,
            category_id=line.category_id,
            subcategory_id=line.subcategory_id,
            description=line.description,
            quantity=line.quantity,
            unit_price=to_money(line.unit_price),
            total_price=to_money(line.unit_price * line.quantity),
            customization=line.customization,
        )
        for position, line in enumerate(lines)
    ]


def priced_items(lines: list[OrderItemInput]) -> list[PricedItem]:
    return [
        PricedItem(
            product_id=line.product_id,
            unit_price=to_money(line.unit_price),
            quantity=line.quantity,
            category_id=line.category_id,
            subcategory_id=line.subcategory_id,
        )
        for line in lines
    ]


def compute_total(
    subtotal: Decimal,
    discount: Decimal,
    points_discount: Decimal,
    shipping: Decimal,
    tax: Decimal,
) -> Decimal:
    """total = subtotal - discount - points discount + shipping + tax"""
    return to_money(subtotal - discount - points_discount + shipping + tax)


class OrderTransactionManager:
    def __init__(
        self,
        session_factory: SessionFactory,
        recovery: Optional[RecoveryService] = None,
        accounting: Optional[AccountingService] = None,
    ) -> None:
        self.session_factory = session_factory
        self.recovery = recovery or RecoveryService(session_factory)
        self.accounting = accounting or AccountingService(session_factory)

    @staticmethod
    async def _check_designs(session: AsyncSession, customer_id: UUID, lines: list[OrderItemInput]) -> None:
        """Every referenced design must exist and belong to the customer."""
        design_ids = {line.design_id for line in lines if line.design_id is not None}
        if not design_ids:
            return

        designs = {d.id: d for d in await CustomerRepository(session).get_designs(list(design_ids))}
        for design_id in design_ids:
            design = designs.get(design_id)
            if design is None:
                raise NotFoundError("Design not found", design_id=str(design_id))
            if design.customer_id != customer_id:
                raise ForbiddenError("Design belongs to another customer", design_id=str(design_id))

    async def create_order(self, principal: Principal, request: CheckoutRequest) -> Order:
        """
        Create an order from a checkout submission.

        Raises:
            ValidationError: empty cart, points over the order value
            NotFoundError / ForbiddenError: unknown or foreign design
            PromoRejectedError: promo failed a redemption rule
            InsufficientPointsError: balance does not cover the redemption
        """
        if not request.items:
            raise ValidationError("Order must contain at least one item", field="items")

        customer_id = principal.customer_id
        shipping = to_money(request.shipping_cost)
        tax = to_money(request.tax_amount)

        async with self.session_factory() as session:
            async with session.begin():
                await self._check_designs(session, customer_id, request.items)

                customer = await session.get(Customer, customer_id)
                if customer is None:
                    raise NotFoundError("Customer not found")
                email = principal.email or customer.email

                items = build_items(request.items)
                subtotal = to_money(sum((item.total_price for item in items), Decimal("0")))

                order = Order(
                    id=uuid4(),
                    customer_id=customer_id,
                    subtotal=subtotal,
                    discount_amount=Decimal("0.00"),
                    shipping_cost=shipping,
                    tax_amount=tax,
                    total_price=compute_total(subtotal, Decimal("0"), Decimal("0"), shipping, tax),
                    currency=settings.currency,
                    shipping_address=request.shipping_address.model_dump(),
                    status=OrderStatus.PENDING.value,
                    share_token=generate_share_token(),
                    items=items,
                )
                session.add(order)
                # The order row must exist before ledgers reference it
                await session.flush()

                discount = Decimal("0.00")
                if request.promo_code:
                    promos = PromoLedger(session)
                    quote = await promos.quote(request.promo_code, priced_items(request.items), subtotal)
                    if quote.discount_amount > 0:
                        await promos.validate_and_record(
                            request.promo_code,
                            order_id=order.id,
                            discount_amount=quote.discount_amount,
                            cart_total=subtotal,
                            customer_id=customer_id,
                            email=email,
                        )
                        discount = quote.discount_amount
                        order.promo_code = quote.promo.code
                    else:
                        logger.info(
                            "Promo has no eligible items, placing order without it",
                            code=quote.promo.code,
                            order_id=str(order.id),
                        )

                points_discount = Decimal("0.00")
                if request.points_to_redeem:
                    points = request.points_to_redeem
                    if points_to_discount(points) > subtotal - discount:
                        raise ValidationError(
                            "Points discount cannot exceed the order value",
                            field="pointsToRedeem",
                        )
                    points_discount = await LoyaltyLedger(session).redeem(customer_id, points, order.id)
                    order.points_used = points
                    order.points_discount = points_discount

                total = compute_total(subtotal, discount, points_discount, shipping, tax)
                if total < 0:
                    raise ValidationError("Order total cannot be negative")

                order.discount_amount = discount
                order.total_price = total

                add_audit_entry(
                    session,
                    action="ORDER_CREATED",
                    entity_type="ORDER",
                    entity_id=order.id,
                    actor_type=ActorType.CUSTOMER,
                    actor_id=customer_id,
                    new_state={"status": order.status, "total": str(total)},
                )

        logger.info(
            "Order created",
            order_id=str(order.id),
            customer_id=str(customer_id),
            subtotal=str(subtotal),
            discount=str(discount),
            points_discount=str(points_discount),
            total=str(total),
        )

        await self.recovery.after_order_placed(
            customer_id,
            order.id,
            total,
            promo_code=order.promo_code,
        )

        return await self.get_order(principal, order.id)

    async def get_order(self, principal: Principal, order_id: UUID) -> Order:
        async with self.session_factory() as session:
            order = await OrderRepository(session).get_by_id(order_id)
        if order is None or (order.customer_id != principal.customer_id and not principal.is_admin):
            raise NotFoundError("Order not found")
        return order

    async def list_orders(
        self,
        principal: Principal,
        *,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """Own orders for customers, every order for admins."""
        async with self.session_factory() as session:
            return await OrderRepository(session).list_orders(
                customer_id=None if principal.is_admin else principal.customer_id,
                status=status.value if status else None,
                skip=(page - 1) * page_size,
                limit=page_size,
            )

    async def track_order(self, share_token: str) -> Order:
        async with self.session_factory() as session:
            order = await OrderRepository(session).get_by_share_token(share_token)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def cancel_order(self, principal: Principal, order_id: UUID, notes: Optional[str] = None) -> Order:
        """Customer cancellation, allowed only before payment."""
        async with self.session_factory() as session:
            async with session.begin():
                repo = OrderRepository(session)
                order = await repo.get_by_id(order_id)
                if order is None or (order.customer_id != principal.customer_id and not principal.is_admin):
                    raise NotFoundError("Order not found")

                previous = order.status
                if previous != OrderStatus.PENDING.value:
                    raise InvalidTransitionError(
                        current=previous,
                        target=OrderStatus.CANCELLED.value,
                        message="Only pending orders can be cancelled",
                    )
                ensure_transition(previous, OrderStatus.CANCELLED)

                moved = await repo.compare_and_set_status(
                    order,
                    previous,
                    OrderStatus.CANCELLED.value,
                    cancellation_reason=CancellationReason.CUSTOMER_REQUEST.value,
                    cancellation_notes=notes,
                    cancelled_at=utcnow(),
                )
                if not moved:
                    raise InvalidTransitionError(
                        current=previous,
                        target=OrderStatus.CANCELLED.value,
                        message="Order status changed, please retry",
                    )

                add_audit_entry(
                    session,
                    action="ORDER_CANCELLED",
                    entity_type="ORDER",
                    entity_id=order.id,
                    actor_type=ActorType.ADMIN if principal.is_admin else ActorType.CUSTOMER,
                    actor_id=principal.customer_id,
                    previous_state={"status": previous},
                    new_state={"status": order.status},
                )

        logger.info("Order cancelled", order_id=str(order_id), by=principal.role)
        return order

    async def advance_order_status(
        self,
        principal: Principal,
        order_id: UUID,
        target: OrderStatus,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Admin-driven fulfilment move, checked against the transition table.

        Refunds are never set here: they arrive from the payment gateway so
        the Payment row and the refund ledger move with the order. An admin
        cancel is only allowed while no completed payment exists.

        Raises:
            NotFoundError: unknown order
            InvalidTransitionError: move not allowed for an admin or from the
                current status
        """
        async with self.session_factory() as session:
            async with session.begin():
                repo = OrderRepository(session)
                order = await repo.get_by_id(order_id)
                if order is None:
                    raise NotFoundError("Order not found")

                previous = order.status
                if target not in FULFILMENT_TARGETS:
                    raise InvalidTransitionError(
                        current=previous,
                        target=target.value,
                        message=(
                            "Refunds are recorded from the payment gateway"
                            if target == OrderStatus.REFUNDED
                            else f"Status {target.value} cannot be set by an admin"
                        ),
                    )
                if previous == OrderStatus.CANCELLATION_REQUESTED.value:
                    raise InvalidTransitionError(
                        current=previous,
                        target=target.value,
                        message="Order has a pending cancellation request, review it instead",
                    )
                ensure_transition(previous, target)

                fields = {}
                if target == OrderStatus.CANCELLED:
                    payment = await PaymentRepository(session).get_by_order_id(order.id)
                    if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
                        raise InvalidTransitionError(
                            current=previous,
                            target=target.value,
                            message="Order has a completed payment, refund it through the payment gateway",
                        )
                    fields = {
                        "cancellation_reason": CancellationReason.ADMIN_CANCELLED.value,
                        "cancellation_notes": notes,
                        "cancelled_at": utcnow(),
                    }
                if not await repo.compare_and_set_status(order, previous, target.value, **fields):
                    raise InvalidTransitionError(
                        current=previous,
                        target=target.value,
                        message="Order status changed, please retry",
                    )

                add_audit_entry(
                    session,
                    action="ORDER_STATUS_CHANGED",
                    entity_type="ORDER",
                    entity_id=order.id,
                    actor_type=ActorType.ADMIN,
                    actor_id=principal.customer_id,
                    previous_state={"status": previous},
                    new_state={"status": target.value},
                    metadata={"notes": notes} if notes else None,
                )

        logger.info("Order status changed", order_id=str(order_id), previous=previous, status=target.value)

        if target == OrderStatus.DELIVERED:
            await self.accounting.run_after_delivered(order_id)

        return order
