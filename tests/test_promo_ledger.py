"""
Tests for promo validation, discount calculation and redemption.
"""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from orderflow.core.exceptions import PromoRejectedError
from orderflow.core.utils import utcnow
from orderflow.models import Order, Promo, PromoUsage
from orderflow.services.promo_ledger import PricedItem, PromoLedger, calculate_discount

TEES = PricedItem(product_id="tee-1", unit_price=Decimal("20.00"), quantity=2, category_id="tees")
MUG = PricedItem(product_id="mug-1", unit_price=Decimal("10.00"), quantity=1, category_id="mugs")
CART = [TEES, MUG]
CART_TOTAL = Decimal("50.00")


class TestCalculateDiscount:
    """Tests for scope matching and discount arithmetic."""

    def test_percentage_on_all_products(self):
        promo = Promo(code="SAVE10", discount_type="PERCENTAGE", discount_value=Decimal("10"), scope="ALL_PRODUCTS")

        discount, eligible = calculate_discount(promo, CART, CART_TOTAL)

        assert eligible == Decimal("50.00")
        assert discount == Decimal("5.00")

    def test_percentage_on_category(self):
        promo = Promo(
            code="TEES25",
            discount_type="PERCENTAGE",
            discount_value=Decimal("25"),
            scope="CATEGORY",
            category_id="tees",
        )

        discount, eligible = calculate_discount(promo, CART, CART_TOTAL)

        assert eligible == Decimal("40.00")
        assert discount == Decimal("10.00")

    def test_fixed_discount_capped_at_eligible_total(self):
        promo = Promo(
            code="MUGS15",
            discount_type="FIXED",
            discount_value=Decimal("15"),
            scope="CATEGORY",
            category_id="mugs",
        )

        discount, _ = calculate_discount(promo, CART, CART_TOTAL)

        assert discount == Decimal("10.00")

    def test_specific_products(self):
        promo = Promo(
            code="MUGONLY",
            discount_type="PERCENTAGE",
            discount_value=Decimal("50"),
            scope="SPECIFIC_PRODUCTS",
            product_ids=["mug-1"],
        )

        discount, eligible = calculate_discount(promo, CART, CART_TOTAL)

        assert eligible == Decimal("10.00")
        assert discount == Decimal("5.00")

    def test_rounds_to_pence(self):
        promo = Promo(code="THIRD", discount_type="PERCENTAGE", discount_value=Decimal("33"), scope="ALL_PRODUCTS")

        discount, _ = calculate_discount(promo, CART, Decimal("9.99"))

        assert discount == Decimal("3.30")

    def test_category_without_match_is_zero(self):
        promo = Promo(
            code="HOODIES",
            discount_type="PERCENTAGE",
            discount_value=Decimal("10"),
            scope="CATEGORY",
            category_id="hoodies",
        )

        discount, eligible = calculate_discount(promo, CART, CART_TOTAL)

        assert eligible == Decimal("0")
        assert discount == Decimal("0.00")


class TestPromoPreview:
    """Tests for the read-only rule checks, in rule order."""

    async def _reason(self, session, code, cart_total=CART_TOTAL, **identity):
        with pytest.raises(PromoRejectedError) as exc_info:
            await PromoLedger(session).preview(code, CART, cart_total, **identity)
        return exc_info.value.reason

    async def test_unknown_code(self, session):
        assert await self._reason(session, "NOPE") == "INVALID"

    async def test_inactive(self, session, make_promo):
        await make_promo("OLD", is_active=False)

        assert await self._reason(session, "OLD") == "INACTIVE"

    async def test_not_started(self, session, make_promo):
        await make_promo("SOON", starts_at=utcnow() + timedelta(days=1))

        assert await self._reason(session, "SOON") == "NOT_STARTED"

    async def test_expired(self, session, make_promo):
        await make_promo("GONE", expires_at=utcnow() - timedelta(days=1))

        assert await self._reason(session, "GONE") == "EXPIRED"

    async def test_below_minimum(self, session, make_promo):
        await make_promo("BIG", min_order_amount=Decimal("75.00"))

        assert await self._reason(session, "BIG") == "BELOW_MINIMUM"

    async def test_exhausted(self, session, make_promo):
        await make_promo("LAST", max_uses=1, current_uses=1)

        assert await self._reason(session, "LAST") == "EXHAUSTED"

    async def test_inactive_wins_over_expired(self, session, make_promo):
        await make_promo("DEAD", is_active=False, expires_at=utcnow() - timedelta(days=1))

        assert await self._reason(session, "DEAD") == "INACTIVE"

    async def test_expired_wins_over_minimum(self, session, make_promo):
        await make_promo("OLDBIG", expires_at=utcnow() - timedelta(days=1), min_order_amount=Decimal("500"))

        assert await self._reason(session, "OLDBIG") == "EXPIRED"

    async def test_no_eligible_items(self, session, make_promo):
        await make_promo("HOODIES", scope="CATEGORY", category_id="hoodies")

        assert await self._reason(session, "HOODIES") == "NO_ELIGIBLE_ITEMS"

    async def test_expired_wins_over_scope(self, session, make_promo):
        await make_promo("OLDHOODIES", scope="CATEGORY", category_id="hoodies", expires_at=utcnow() - timedelta(days=1))

        assert await self._reason(session, "OLDHOODIES") == "EXPIRED"

    async def test_valid_code_is_case_insensitive(self, session, make_promo):
        await make_promo("SAVE10")

        quote = await PromoLedger(session).preview(" save10 ", CART, CART_TOTAL)

        assert quote.promo.code == "SAVE10"
        assert quote.discount_amount == Decimal("5.00")
        assert quote.discount_percentage == Decimal("10")

    async def test_preview_does_not_consume(self, session, make_promo, fetch):
        await make_promo("SAVE10", max_uses=5)

        await PromoLedger(session).preview("SAVE10", CART, CART_TOTAL)

        promo = await fetch(Promo, Promo.code == "SAVE10")
        assert promo.current_uses == 0


class TestPromoRedemption:
    """Tests for redemption through order placement."""

    async def test_redemption_records_usage(self, make_customer, make_promo, place_order, fetch):
        customer = await make_customer()
        await make_promo("SAVE10", max_uses=10)

        order = await place_order(customer, promoCode="save10")

        assert order.promo_code == "SAVE10"
        assert order.discount_amount == Decimal("5.00")
        usage = await fetch(PromoUsage, PromoUsage.order_id == order.id)
        assert usage.discount_amount == Decimal("5.00")
        assert usage.email == customer.email.lower()
        promo = await fetch(Promo, Promo.code == "SAVE10")
        assert promo.current_uses == 1

    async def test_second_use_by_same_customer_rejected(self, make_customer, make_promo, place_order, count_rows, fetch):
        customer = await make_customer()
        await make_promo("SAVE10")
        await place_order(customer, promoCode="SAVE10")

        with pytest.raises(PromoRejectedError) as exc_info:
            await place_order(customer, promoCode="SAVE10")

        assert exc_info.value.reason == "ALREADY_USED"
        assert await count_rows(Order) == 1
        promo = await fetch(Promo, Promo.code == "SAVE10")
        assert promo.current_uses == 1

    async def test_rejection_leaves_no_order(self, make_customer, make_promo, place_order, count_rows):
        customer = await make_customer()
        await make_promo("BIG", min_order_amount=Decimal("100.00"))

        with pytest.raises(PromoRejectedError) as exc_info:
            await place_order(customer, promoCode="BIG")

        assert exc_info.value.reason == "BELOW_MINIMUM"
        assert await count_rows(Order) == 0
        assert await count_rows(PromoUsage) == 0

    async def test_concurrent_checkouts_for_last_use(self, make_customer, make_promo, place_order, count_rows, fetch):
        """Two checkouts race for a single-use code; exactly one wins."""
        first = await make_customer()
        second = await make_customer()
        await make_promo("SAVE10", max_uses=1)

        results = await asyncio.gather(
            place_order(first, promoCode="SAVE10"),
            place_order(second, promoCode="SAVE10"),
            return_exceptions=True,
        )

        orders = [r for r in results if isinstance(r, Order)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(orders) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], PromoRejectedError)
        assert errors[0].reason == "EXHAUSTED"

        assert await count_rows(Order) == 1
        assert await count_rows(PromoUsage) == 1
        promo = await fetch(Promo, Promo.code == "SAVE10")
        assert promo.current_uses == 1

    async def test_unlimited_per_user(self, make_customer, make_promo, place_order, count_rows):
        customer = await make_customer()
        await make_promo("ALWAYS", max_uses_per_user=0)

        await place_order(customer, promoCode="ALWAYS")
        await place_order(customer, promoCode="ALWAYS")

        assert await count_rows(PromoUsage) == 2

    async def test_code_without_eligible_items_does_not_block_checkout(
        self, make_customer, make_promo, place_order, count_rows, fetch
    ):
        customer = await make_customer()
        await make_promo("MUGS", scope="CATEGORY", category_id="mugs", max_uses=5)

        order = await place_order(customer, promoCode="MUGS")

        assert order.promo_code is None
        assert order.discount_amount == Decimal("0.00")
        assert order.total_price == Decimal("50.00")
        assert await count_rows(PromoUsage) == 0
        promo = await fetch(Promo, Promo.code == "MUGS")
        assert promo.current_uses == 0

    async def test_expired_code_rejected_before_scope_check(self, make_customer, make_promo, place_order, count_rows):
        customer = await make_customer()
        await make_promo("OLDMUGS", scope="CATEGORY", category_id="mugs", expires_at=utcnow() - timedelta(days=1))

        with pytest.raises(PromoRejectedError) as exc_info:
            await place_order(customer, promoCode="OLDMUGS")

        assert exc_info.value.reason == "EXPIRED"
        assert await count_rows(Order) == 0

    async def test_inactive_code_rejected_before_scope_check(self, make_customer, make_promo, place_order):
        customer = await make_customer()
        await make_promo("DEADMUGS", scope="CATEGORY", category_id="mugs", is_active=False)

        with pytest.raises(PromoRejectedError) as exc_info:
            await place_order(customer, promoCode="DEADMUGS")

        assert exc_info.value.reason == "INACTIVE"
