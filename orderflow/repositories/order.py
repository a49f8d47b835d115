"""
Order repository for data access operations.
"""
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update

from orderflow.models.cancellation import CancellationRequest
from orderflow.models.order import Order
from orderflow.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order

    async def get_by_share_token(self, share_token: str) -> Optional[Order]:
        stmt = select(Order).where(Order.share_token == share_token)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        *,
        customer_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        """
        List orders newest first, optionally scoped to one customer.
        Returns (orders, total) tuple.
        """
        filters = []
        if customer_id is not None:
            filters.append(Order.customer_id == customer_id)
        if status:
            filters.append(Order.status == status)

        count_stmt = select(func.count(Order.id)).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def compare_and_set_status(
        self,
        order: Order,
        expected: str,
        target: str,
        **fields: Any,
    ) -> bool:
        """
        Move ``order`` to ``target`` only if its stored status is still
        ``expected``. Returns False when another writer got there first.
        """
        stmt = (
            update(Order)
            .where(Order.id == order.id, Order.status == expected)
            .values(status=target, **fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False

        order.status = target
        for field, value in fields.items():
            setattr(order, field, value)
        return True

    async def get_cancellation_request(self, order_id: UUID) -> Optional[CancellationRequest]:
        stmt = select(CancellationRequest).where(CancellationRequest.order_id == order_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
