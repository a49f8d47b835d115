"""
Promo Ledger - promo code validation, discount quotes and redemption.

Redemption runs inside the caller's order transaction. The total budget is
enforced by a guarded UPDATE on the promo row rather than a read-then-write,
so concurrent checkouts racing for the last use cannot both succeed.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.exceptions import PromoRejectedError
from orderflow.core.logging import get_logger
from orderflow.core.utils import Number, ensure_utc, to_money, utcnow
from orderflow.models.promo import DiscountType, Promo, PromoScope, PromoUsage
from orderflow.repositories.promo import PromoRepository

logger = get_logger(__name__)


class RejectionReason(str, Enum):
    INVALID = "INVALID"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    EXHAUSTED = "EXHAUSTED"
    ALREADY_USED = "ALREADY_USED"
    NO_ELIGIBLE_ITEMS = "NO_ELIGIBLE_ITEMS"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.INVALID: "Invalid promo code",
    RejectionReason.INACTIVE: "This promo code is no longer active",
    RejectionReason.NOT_STARTED: "This promo code is not yet active",
    RejectionReason.EXPIRED: "This promo code has expired",
    RejectionReason.BELOW_MINIMUM: "Order total is below the minimum for this promo code",
    RejectionReason.EXHAUSTED: "This promo code has reached its usage limit",
    RejectionReason.ALREADY_USED: "You have already used this promo code",
    RejectionReason.NO_ELIGIBLE_ITEMS: "No eligible items in cart for this promo",
}


@dataclass(frozen=True)
class PricedItem:
    """Minimal view of a cart line used for promo scope matching."""

    product_id: str
    unit_price: Decimal
    quantity: int
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PromoQuote:
    promo: Promo
    eligible_total: Decimal
    discount_amount: Decimal

    @property
    def discount_percentage(self) -> Optional[Decimal]:
        if self.promo.discount_type == DiscountType.PERCENTAGE.value:
            return Decimal(self.promo.discount_value)
        return None


def _reject(reason: RejectionReason, message: Optional[str] = None) -> PromoRejectedError:
    return PromoRejectedError(reason.value, message or REJECTION_MESSAGES[reason])


def eligible_total(promo: Promo, items: Sequence[PricedItem], cart_total: Decimal) -> Decimal:
    """Sum of the cart lines the promo's scope applies to."""
    scope = promo.scope
    if scope == PromoScope.ALL_PRODUCTS.value:
        return cart_total
    if scope == PromoScope.CATEGORY.value:
        if not promo.category_id:
            return Decimal("0")
        return sum((i.line_total for i in items if i.category_id == promo.category_id), Decimal("0"))
    if scope == PromoScope.SUBCATEGORY.value:
        if not promo.subcategory_id:
            return Decimal("0")
        return sum(
            (i.line_total for i in items if i.subcategory_id == promo.subcategory_id),
            Decimal("0"),
        )
    if scope == PromoScope.SPECIFIC_PRODUCTS.value:
        product_ids = set(promo.product_ids or [])
        return sum((i.line_total for i in items if i.product_id in product_ids), Decimal("0"))
    return Decimal("0")


def calculate_discount(promo: Promo, items: Sequence[PricedItem], cart_total: Number) -> tuple[Decimal, Decimal]:
    """
    Compute (discount, eligible_total) for a cart.

    Percentage promos apply to the eligible total; fixed promos are capped at
    it. The result is rounded to pence.
    """
    cart_total = to_money(cart_total)
    eligible = to_money(eligible_total(promo, items, cart_total))
    value = Decimal(promo.discount_value)

    if promo.discount_type == DiscountType.PERCENTAGE.value:
        discount = eligible * value / Decimal("100")
    else:
        discount = min(value, eligible)

    return to_money(discount), eligible


class PromoLedger:
    """Validates and records promo redemptions against a session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.promos = PromoRepository(session)

    def _check_static_rules(self, promo: Optional[Promo], cart_total: Decimal, now: datetime) -> Promo:
        """Rules 1-3: existence, activity, validity window, minimum order."""
        if promo is None:
            raise _reject(RejectionReason.INVALID)
        if not promo.is_active:
            raise _reject(RejectionReason.INACTIVE)
        if promo.starts_at and now < ensure_utc(promo.starts_at):
            raise _reject(RejectionReason.NOT_STARTED)
        if promo.expires_at and now > ensure_utc(promo.expires_at):
            raise _reject(RejectionReason.EXPIRED)
        if promo.min_order_amount is not None and cart_total < Decimal(promo.min_order_amount):
            raise _reject(
                RejectionReason.BELOW_MINIMUM,
                f"Minimum order amount of £{Decimal(promo.min_order_amount):.2f} required",
            )
        return promo

    async def _check_per_customer(
        self,
        promo: Promo,
        customer_id: Optional[UUID],
        email: Optional[str],
    ) -> None:
        if promo.max_uses_per_user <= 0 or (customer_id is None and not email):
            return
        used = await self.promos.count_usages(promo.id, customer_id=customer_id, email=email)
        if used >= promo.max_uses_per_user:
            raise _reject(RejectionReason.ALREADY_USED)

    async def quote(
        self,
        code: str,
        items: Sequence[PricedItem],
        cart_total: Number,
    ) -> PromoQuote:
        """
        Price a promo code against a cart without checking budgets.

        The static rules run first so an expired or inactive code reports
        that reason. A code with nothing in scope quotes a zero discount.

        Raises:
            PromoRejectedError: INVALID, INACTIVE, NOT_STARTED, EXPIRED or
                BELOW_MINIMUM
        """
        cart_total = to_money(cart_total)
        promo = self._check_static_rules(await self.promos.get_by_code(code), cart_total, utcnow())
        discount, eligible = calculate_discount(promo, items, cart_total)
        return PromoQuote(promo=promo, eligible_total=eligible, discount_amount=discount)

    async def preview(
        self,
        code: str,
        items: Sequence[PricedItem],
        cart_total: Number,
        *,
        customer_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> PromoQuote:
        """Run every redemption rule read-only and return the quote."""
        quote = await self.quote(code, items, cart_total)
        promo = quote.promo
        if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
            raise _reject(RejectionReason.EXHAUSTED)
        await self._check_per_customer(promo, customer_id, email)
        if quote.discount_amount <= 0:
            raise _reject(RejectionReason.NO_ELIGIBLE_ITEMS)
        return quote

    async def validate_and_record(
        self,
        code: str,
        *,
        order_id: UUID,
        discount_amount: Number,
        cart_total: Number,
        customer_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> PromoUsage:
        """
        Validate a promo for this order and record the redemption.

        Must run inside the order's transaction. The first failing rule wins:
        INVALID/INACTIVE, NOT_STARTED/EXPIRED, BELOW_MINIMUM, EXHAUSTED,
        ALREADY_USED.

        Raises:
            PromoRejectedError: with the failing rule's reason
        """
        cart_total = to_money(cart_total)
        promo = self._check_static_rules(await self.promos.get_by_code(code), cart_total, utcnow())

        # Takes the row lock; everything below is serialized per promo
        if not await self.promos.try_consume(promo.id):
            logger.info("Promo budget exhausted", code=promo.code, order_id=str(order_id))
            raise _reject(RejectionReason.EXHAUSTED)

        await self._check_per_customer(promo, customer_id, email)

        usage = await self.promos.add_usage(
            promo_id=promo.id,
            order_id=order_id,
            customer_id=customer_id,
            email=email,
            discount_amount=to_money(discount_amount),
        )
        logger.info(
            "Promo redeemed",
            code=promo.code,
            order_id=str(order_id),
            discount=str(usage.discount_amount),
        )
        return usage
