"""
Post-order housekeeping: clear the customer's cart and settle abandoned-cart
recovery campaigns once they have ordered.
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from orderflow.core.database import SessionFactory
from orderflow.core.logging import get_logger
from orderflow.core.utils import utcnow
from orderflow.models.recovery import CampaignStatus, RecoveryCampaign
from orderflow.repositories.customer import CustomerRepository

logger = get_logger(__name__)

OPEN_CAMPAIGN_STATUSES = (CampaignStatus.PENDING.value, CampaignStatus.SENT.value)


class RecoveryService:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def clear_cart(self, customer_id: UUID) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                removed = await CustomerRepository(session).clear_cart(customer_id)
        logger.info("Cart cleared", customer_id=str(customer_id), items=removed)
        return removed

    async def mark_converted(
        self,
        customer_id: UUID,
        promo_code: str,
        order_id: UUID,
        order_value: Decimal,
    ) -> bool:
        """Mark the campaign whose promo code was used as converted."""
        async with self.session_factory() as session:
            async with session.begin():
                stmt = (
                    select(RecoveryCampaign)
                    .where(
                        RecoveryCampaign.customer_id == customer_id,
                        RecoveryCampaign.promo_code == promo_code.upper(),
                        RecoveryCampaign.status.in_(OPEN_CAMPAIGN_STATUSES),
                    )
                    .order_by(RecoveryCampaign.created_at.desc())
                    .limit(1)
                )
                campaign = (await session.execute(stmt)).scalar_one_or_none()
                if campaign is None:
                    return False

                campaign.status = CampaignStatus.CONVERTED.value
                campaign.converted_order_id = order_id
                campaign.converted_at = utcnow()
                campaign.order_value = order_value

        logger.info("Recovery campaign converted", campaign_id=str(campaign.id), order_id=str(order_id))
        return True

    async def cancel_open_campaigns(self, customer_id: UUID) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                stmt = (
                    update(RecoveryCampaign)
                    .where(
                        RecoveryCampaign.customer_id == customer_id,
                        RecoveryCampaign.status.in_(OPEN_CAMPAIGN_STATUSES),
                    )
                    .values(status=CampaignStatus.CANCELLED.value)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
        cancelled = result.rowcount or 0
        if cancelled:
            logger.info("Recovery campaigns cancelled", customer_id=str(customer_id), count=cancelled)
        return cancelled

    async def after_order_placed(
        self,
        customer_id: UUID,
        order_id: UUID,
        order_value: Decimal,
        promo_code: Optional[str] = None,
    ) -> None:
        """Run every housekeeping step, each isolated. Never raises."""
        try:
            await self.clear_cart(customer_id)
        except Exception:
            logger.exception("Cart clear failed", customer_id=str(customer_id))

        # Conversion first so the used campaign is not swept up as cancelled
        if promo_code:
            try:
                await self.mark_converted(customer_id, promo_code, order_id, order_value)
            except Exception:
                logger.exception("Recovery conversion tracking failed", order_id=str(order_id))

        try:
            await self.cancel_open_campaigns(customer_id)
        except Exception:
            logger.exception("Recovery campaign cancellation failed", customer_id=str(customer_id))
