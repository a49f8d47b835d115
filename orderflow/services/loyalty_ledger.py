"""
Loyalty Ledger - points redemption at checkout and awards after payment.
"""
from decimal import ROUND_FLOOR, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.config import settings
from orderflow.core.exceptions import InsufficientPointsError, NotFoundError, ValidationError
from orderflow.core.logging import get_logger
from orderflow.core.utils import Number, to_money
from orderflow.models.loyalty import PointsTransaction, PointsTransactionType
from orderflow.repositories.customer import CustomerRepository

logger = get_logger(__name__)


def points_to_discount(points: int) -> Decimal:
    """Monetary value of ``points`` (100 points = £1.00 by default)."""
    return to_money(Decimal(points) / Decimal(settings.points_per_pound_discount))


def points_for_amount(amount_paid: Number) -> int:
    """Points earned for a payment: floor(amount x rate)."""
    earned = Decimal(str(amount_paid)) * settings.points_per_pound_spent
    return int(earned.to_integral_value(rounding=ROUND_FLOOR))


class LoyaltyLedger:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.customers = CustomerRepository(session)

    async def redeem(self, customer_id: UUID, points: int, order_id: UUID) -> Decimal:
        """
        Debit points for an order and return the discount they buy.

        Runs inside the order transaction. The balance check and the debit
        are one conditional UPDATE.

        Raises:
            ValidationError: non-positive or below the redemption minimum
            InsufficientPointsError: balance does not cover ``points``
        """
        if points <= 0:
            raise ValidationError("Points to redeem must be positive", field="pointsToRedeem")
        if points < settings.min_points_to_redeem:
            raise ValidationError(
                f"Minimum {settings.min_points_to_redeem} points required to redeem",
                field="pointsToRedeem",
            )

        if not await self.customers.debit_points(customer_id, points):
            balance = await self.customers.get_points_balance(customer_id)
            logger.info(
                "Points redemption rejected",
                customer_id=str(customer_id),
                requested=points,
                balance=balance,
            )
            raise InsufficientPointsError(
                requested=points,
                message=f"Insufficient points: requested {points}, available {balance or 0}",
            )

        self.session.add(
            PointsTransaction(
                customer_id=customer_id,
                amount=-points,
                type=PointsTransactionType.CHECKOUT_REDEMPTION.value,
                reference_id=str(order_id),
                description=f"Redeemed at checkout for order {str(order_id)[:8].upper()}",
            )
        )
        await self.session.flush()

        discount = points_to_discount(points)
        logger.info(
            "Points redeemed",
            customer_id=str(customer_id),
            points=points,
            discount=str(discount),
            order_id=str(order_id),
        )
        return discount

    async def has_award(self, customer_id: UUID, order_id: UUID) -> bool:
        stmt = select(PointsTransaction.id).where(
            PointsTransaction.customer_id == customer_id,
            PointsTransaction.type == PointsTransactionType.PURCHASE_REWARD.value,
            PointsTransaction.reference_id == str(order_id),
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def award(self, customer_id: UUID, order_id: UUID, amount_paid: Number) -> int:
        """
        Credit purchase points for a paid order. Returns points awarded,
        0 when nothing was due or the order was already rewarded.
        """
        points = points_for_amount(amount_paid)
        if points <= 0:
            return 0
        if await self.has_award(customer_id, order_id):
            logger.info("Points already awarded", customer_id=str(customer_id), order_id=str(order_id))
            return 0

        self.session.add(
            PointsTransaction(
                customer_id=customer_id,
                amount=points,
                type=PointsTransactionType.PURCHASE_REWARD.value,
                reference_id=str(order_id),
                description=f"Purchase reward for order {str(order_id)[:8].upper()}",
            )
        )
        # Unique (customer, type, reference) rejects a concurrent double award here
        await self.session.flush()

        if not await self.customers.credit_points(customer_id, points):
            raise NotFoundError("Customer not found", customer_id=str(customer_id))

        logger.info("Points awarded", customer_id=str(customer_id), points=points, order_id=str(order_id))
        return points

    async def balance(self, customer_id: UUID) -> int:
        balance = await self.customers.get_points_balance(customer_id)
        if balance is None:
            raise NotFoundError("Customer not found")
        return balance

    async def history(self, customer_id: UUID, limit: Optional[int] = 20) -> list[PointsTransaction]:
        stmt = (
            select(PointsTransaction)
            .where(PointsTransaction.customer_id == customer_id)
            .order_by(PointsTransaction.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
