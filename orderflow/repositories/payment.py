"""
Payment repository for data access operations.
"""
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from orderflow.models.order import Order
from orderflow.models.payment import Payment
from orderflow.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment model operations."""

    model = Payment

    async def get_by_order_id(self, order_id: UUID) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.order_id == order_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_gateway_id(self, gateway_payment_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.gateway_payment_id == gateway_payment_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def upsert_for_order(self, order_id: UUID, **fields: Any) -> tuple[Payment, bool]:
        """
        Create the order's payment or update the existing one.
        Returns (payment, created) tuple.
        """
        existing = await self.get_by_order_id(order_id)

        if existing:
            for field, value in fields.items():
                setattr(existing, field, value)
            await self.session.flush()
            return existing, False

        payment = Payment(order_id=order_id, **fields)
        self.session.add(payment)
        await self.session.flush()
        return payment, True

    async def get_with_order(self, payment_id: UUID) -> Optional[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .options(selectinload(Payment.order), selectinload(Payment.invoice))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_payments(
        self,
        *,
        customer_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Payment], int]:
        """
        List payments newest first, optionally scoped to one customer's orders.
        Returns (payments, total) tuple.
        """
        filters = []
        if customer_id is not None:
            filters.append(Order.customer_id == customer_id)
        if status:
            filters.append(Payment.status == status)

        count_stmt = select(func.count(Payment.id)).join(Payment.order).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Payment)
            .join(Payment.order)
            .where(*filters)
            .options(selectinload(Payment.order), selectinload(Payment.invoice))
            .order_by(Payment.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
