"""
Promo repository: code lookup, guarded usage counter, usage ledger.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update

from orderflow.models.promo import Promo, PromoUsage
from orderflow.repositories.base import BaseRepository


class PromoRepository(BaseRepository[Promo]):
    """Repository for Promo and PromoUsage operations."""

    model = Promo

    async def get_by_code(self, code: str) -> Optional[Promo]:
        """Get a promo by code (codes are stored upper-cased)."""
        stmt = select(Promo).where(Promo.code == code.strip().upper())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def try_consume(self, promo_id: UUID) -> bool:
        """
        Atomically take one use from the promo's budget.

        The guard lives in the UPDATE itself, so two transactions racing for
        the last use are serialized by the database row lock and only one of
        them sees a matched row.
        """
        stmt = (
            update(Promo)
            .where(
                Promo.id == promo_id,
                Promo.is_active.is_(True),
                or_(Promo.max_uses.is_(None), Promo.current_uses < Promo.max_uses),
            )
            .values(current_uses=Promo.current_uses + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def count_usages(
        self,
        promo_id: UUID,
        *,
        customer_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> int:
        """Count prior redemptions of a promo by this customer or email."""
        identity = []
        if customer_id is not None:
            identity.append(PromoUsage.customer_id == customer_id)
        if email:
            identity.append(PromoUsage.email == email.lower())
        if not identity:
            return 0

        stmt = select(func.count(PromoUsage.id)).where(
            PromoUsage.promo_id == promo_id,
            or_(*identity),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def add_usage(
        self,
        *,
        promo_id: UUID,
        order_id: UUID,
        discount_amount,
        customer_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> PromoUsage:
        usage = PromoUsage(
            promo_id=promo_id,
            order_id=order_id,
            customer_id=customer_id,
            email=email.lower() if email else None,
            discount_amount=discount_amount,
        )
        self.session.add(usage)
        await self.session.flush()
        return usage
