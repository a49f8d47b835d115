"""
Customer repository: lookups and guarded loyalty balance updates.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update

from orderflow.models.customer import CartItem, Customer, Design
from orderflow.repositories.base import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Repository for Customer model operations."""

    model = Customer

    async def get_points_balance(self, customer_id: UUID) -> Optional[int]:
        stmt = select(Customer.loyalty_points).where(Customer.id == customer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def debit_points(self, customer_id: UUID, points: int) -> bool:
        """Subtract points only if the balance covers them."""
        stmt = (
            update(Customer)
            .where(Customer.id == customer_id, Customer.loyalty_points >= points)
            .values(loyalty_points=Customer.loyalty_points - points)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def credit_points(self, customer_id: UUID, points: int) -> bool:
        stmt = (
            update(Customer)
            .where(Customer.id == customer_id)
            .values(loyalty_points=Customer.loyalty_points + points)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_designs(self, design_ids: list[UUID]) -> list[Design]:
        if not design_ids:
            return []
        stmt = select(Design).where(Design.id.in_(design_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def clear_cart(self, customer_id: UUID) -> int:
        stmt = delete(CartItem).where(CartItem.customer_id == customer_id)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
