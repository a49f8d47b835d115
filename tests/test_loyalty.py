"""
Tests for loyalty points redemption and purchase awards.
"""
from decimal import Decimal
from uuid import uuid4

import pytest

from orderflow.core.exceptions import InsufficientPointsError, ValidationError
from orderflow.models import Customer, Order, PointsTransaction
from orderflow.services.loyalty_ledger import LoyaltyLedger, points_for_amount, points_to_discount


class TestPointsArithmetic:
    def test_points_to_discount(self):
        assert points_to_discount(500) == Decimal("5.00")
        assert points_to_discount(1234) == Decimal("12.34")

    def test_points_for_amount_floors(self):
        assert points_for_amount(Decimal("45.99")) == 459
        assert points_for_amount(Decimal("0.05")) == 0
        assert points_for_amount(Decimal("50.00")) == 500


class TestRedemptionAtCheckout:
    """Tests for points debited inside the order transaction."""

    async def test_redeem_reduces_total_and_balance(self, make_customer, place_order, fetch):
        customer = await make_customer(points=1000)

        order = await place_order(customer, pointsToRedeem=600)

        assert order.points_used == 600
        assert order.points_discount == Decimal("6.00")
        assert order.total_price == Decimal("44.00")

        refreshed = await fetch(Customer, Customer.id == customer.id)
        assert refreshed.loyalty_points == 400

        entry = await fetch(PointsTransaction, PointsTransaction.reference_id == str(order.id))
        assert entry.amount == -600
        assert entry.type == "CHECKOUT_REDEMPTION"

    async def test_insufficient_balance_leaves_no_order(self, make_customer, place_order, count_rows, fetch):
        customer = await make_customer(points=400)

        with pytest.raises(InsufficientPointsError) as exc_info:
            await place_order(customer, pointsToRedeem=500)

        assert exc_info.value.requested == 500
        assert await count_rows(Order) == 0
        assert await count_rows(PointsTransaction) == 0
        refreshed = await fetch(Customer, Customer.id == customer.id)
        assert refreshed.loyalty_points == 400

    async def test_below_minimum_rejected(self, make_customer, place_order, count_rows):
        customer = await make_customer(points=1000)

        with pytest.raises(ValidationError):
            await place_order(customer, pointsToRedeem=400)

        assert await count_rows(Order) == 0

    async def test_points_cannot_exceed_order_value(self, make_customer, place_order, count_rows):
        customer = await make_customer(points=10000)

        with pytest.raises(ValidationError):
            await place_order(customer, pointsToRedeem=6000)

        assert await count_rows(Order) == 0


class TestPurchaseAward:
    async def test_award_once_per_order(self, session_factory, make_customer, fetch, count_rows):
        customer = await make_customer(points=0)
        order_id = uuid4()

        async with session_factory() as session:
            async with session.begin():
                first = await LoyaltyLedger(session).award(customer.id, order_id, Decimal("45.99"))
        async with session_factory() as session:
            async with session.begin():
                second = await LoyaltyLedger(session).award(customer.id, order_id, Decimal("45.99"))

        assert first == 459
        assert second == 0
        refreshed = await fetch(Customer, Customer.id == customer.id)
        assert refreshed.loyalty_points == 459
        assert await count_rows(PointsTransaction) == 1

    async def test_nothing_awarded_for_tiny_amount(self, session_factory, make_customer, count_rows):
        customer = await make_customer()

        async with session_factory() as session:
            async with session.begin():
                awarded = await LoyaltyLedger(session).award(customer.id, uuid4(), Decimal("0.05"))

        assert awarded == 0
        assert await count_rows(PointsTransaction) == 0

    async def test_history_newest_first(self, session_factory, make_customer):
        customer = await make_customer()

        async with session_factory() as session:
            async with session.begin():
                ledger = LoyaltyLedger(session)
                await ledger.award(customer.id, uuid4(), Decimal("10.00"))
                await ledger.award(customer.id, uuid4(), Decimal("20.00"))

        async with session_factory() as session:
            ledger = LoyaltyLedger(session)
            assert await ledger.balance(customer.id) == 300
            history = await ledger.history(customer.id)

        assert [t.amount for t in history] == [200, 100]
