"""
Tests for the HTTP surface: auth, checkout, promo preview, points and the
gateway webhook endpoint.
"""
import time
from decimal import Decimal
from uuid import uuid4

import pytest

from orderflow.models import Order, Payment


@pytest.mark.asyncio
async def test_checkout_requires_auth(async_client, checkout_payload):
    """Test checkout without a bearer token is rejected."""
    response = await async_client.post("/api/orders", json=checkout_payload())

    assert response.status_code == 401
    assert response.json()["error"]["type"] == "UnauthorizedError"


@pytest.mark.asyncio
async def test_checkout_rejects_bad_token(async_client, checkout_payload):
    response = await async_client.post(
        "/api/orders",
        json=checkout_payload(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_creates_order(async_client, make_customer, auth_headers, checkout_payload):
    """Test a successful checkout returns the priced order."""
    customer = await make_customer()

    response = await async_client.post("/api/orders", json=checkout_payload(), headers=auth_headers(customer))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["customerId"] == str(customer.id)
    assert Decimal(data["subtotal"]) == Decimal("50.00")
    assert Decimal(data["totalPrice"]) == Decimal("50.00")
    assert len(data["items"]) == 1
    assert data["items"][0]["productId"] == "tshirt-classic"
    assert data["shareToken"]


@pytest.mark.asyncio
async def test_checkout_ignores_client_totals(async_client, make_customer, auth_headers, checkout_payload):
    """Totals are recomputed server-side; extra client fields are ignored."""
    customer = await make_customer()

    response = await async_client.post(
        "/api/orders",
        json=checkout_payload(totalPrice="0.01", subtotal="0.01"),
        headers=auth_headers(customer),
    )

    assert response.status_code == 201
    assert Decimal(response.json()["totalPrice"]) == Decimal("50.00")


@pytest.mark.asyncio
async def test_checkout_invalid_quantity(async_client, make_customer, auth_headers, checkout_payload):
    customer = await make_customer()

    response = await async_client.post(
        "/api/orders",
        json=checkout_payload(items=[{"productId": "tee", "quantity": 0, "unitPrice": "10.00"}]),
        headers=auth_headers(customer),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_checkout_promo_rejection(async_client, make_customer, auth_headers, checkout_payload, count_rows):
    """Test a rejected promo returns 400 with the failing rule."""
    customer = await make_customer()

    response = await async_client.post(
        "/api/orders",
        json=checkout_payload(promoCode="NOPE"),
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "PromoRejected"
    assert error["reason"] == "INVALID"
    assert await count_rows(Order) == 0


@pytest.mark.asyncio
async def test_checkout_insufficient_points(async_client, make_customer, auth_headers, checkout_payload, count_rows):
    customer = await make_customer(points=400)

    response = await async_client.post(
        "/api/orders",
        json=checkout_payload(pointsToRedeem=500),
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "InsufficientPoints"
    assert error["requested"] == 500
    assert await count_rows(Order) == 0


@pytest.mark.asyncio
async def test_order_lookup_and_listing(async_client, make_customer, auth_headers, place_order):
    customer = await make_customer()
    stranger = await make_customer()
    order = await place_order(customer)

    own = await async_client.get(f"/api/orders/{order.id}", headers=auth_headers(customer))
    foreign = await async_client.get(f"/api/orders/{order.id}", headers=auth_headers(stranger))
    listing = await async_client.get("/api/orders", headers=auth_headers(customer))

    assert own.status_code == 200
    assert own.json()["reference"] == order.reference
    assert foreign.status_code == 404
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["hasMore"] is False


@pytest.mark.asyncio
async def test_public_tracking(async_client, make_customer, place_order):
    """Test tracking by share token needs no auth and hides details."""
    customer = await make_customer()
    order = await place_order(customer)

    response = await async_client.get(f"/api/orders/track/{order.share_token}")

    assert response.status_code == 200
    data = response.json()
    assert data["reference"] == order.reference
    assert data["status"] == "pending"
    assert data["itemCount"] == 2
    assert "shippingAddress" not in data


@pytest.mark.asyncio
async def test_cancel_endpoint(async_client, make_customer, auth_headers, place_order):
    customer = await make_customer()
    order = await place_order(customer)

    first = await async_client.post(f"/api/orders/{order.id}/cancel", headers=auth_headers(customer))
    second = await async_client.post(f"/api/orders/{order.id}/cancel", headers=auth_headers(customer))

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert first.json()["cancellationReason"] == "CUSTOMER_REQUEST"
    assert second.status_code == 409
    assert second.json()["error"]["type"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_status_update_requires_admin(async_client, make_customer, auth_headers, place_order):
    customer = await make_customer()
    order = await place_order(customer)

    forbidden = await async_client.post(
        f"/api/orders/{order.id}/status",
        json={"status": "printing"},
        headers=auth_headers(customer),
    )
    invalid = await async_client.post(
        f"/api/orders/{order.id}/status",
        json={"status": "printing"},
        headers=auth_headers(customer, role="admin"),
    )

    assert forbidden.status_code == 403
    assert invalid.status_code == 409


@pytest.mark.asyncio
async def test_admin_cannot_mark_paid_order_refunded(async_client, make_customer, auth_headers, place_order, pay_order):
    customer = await make_customer()
    order = await place_order(customer)
    await pay_order(order)

    refunded = await async_client.post(
        f"/api/orders/{order.id}/status",
        json={"status": "refunded"},
        headers=auth_headers(customer, role="admin"),
    )
    cancelled = await async_client.post(
        f"/api/orders/{order.id}/status",
        json={"status": "cancelled"},
        headers=auth_headers(customer, role="admin"),
    )
    confirmed = await async_client.post(
        f"/api/orders/{order.id}/status",
        json={"status": "confirmed"},
        headers=auth_headers(customer, role="admin"),
    )

    assert refunded.status_code == 409
    assert refunded.json()["error"]["type"] == "InvalidTransition"
    assert cancelled.status_code == 409
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["payment"]["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_cancellation_request_endpoints(async_client, make_customer, auth_headers, place_order, pay_order):
    customer = await make_customer()
    order = await place_order(customer)
    await pay_order(order)

    created = await async_client.post(
        f"/api/orders/{order.id}/cancel-request",
        json={"reason": "DUPLICATE_ORDER", "notes": "Ordered twice"},
        headers=auth_headers(customer),
    )
    fetched = await async_client.get(f"/api/orders/{order.id}/cancel-request", headers=auth_headers(customer))
    by_customer = await async_client.post(
        f"/api/orders/{order.id}/cancel-request/review",
        json={"action": "APPROVE"},
        headers=auth_headers(customer),
    )
    rejected = await async_client.post(
        f"/api/orders/{order.id}/cancel-request/review",
        json={"action": "REJECT", "notes": "Already printed"},
        headers=auth_headers(customer, role="admin"),
    )

    assert created.status_code == 201
    assert created.json()["status"] == "PENDING"
    assert created.json()["previousStatus"] == "payment_confirmed"
    assert fetched.status_code == 200
    assert fetched.json()["reason"] == "DUPLICATE_ORDER"
    assert by_customer.status_code == 403
    assert rejected.status_code == 200
    assert rejected.json()["orderStatus"] == "payment_confirmed"
    assert rejected.json()["awaitingRefund"] is False
    assert rejected.json()["request"]["reviewNotes"] == "Already printed"


@pytest.mark.asyncio
async def test_cancellation_request_bad_reason(async_client, make_customer, auth_headers, place_order, pay_order):
    customer = await make_customer()
    order = await place_order(customer)
    await pay_order(order)

    response = await async_client.post(
        f"/api/orders/{order.id}/cancel-request",
        json={"reason": "ADMIN_CANCELLED"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "reason"


@pytest.mark.asyncio
async def test_payment_listing_and_detail(async_client, make_customer, auth_headers, place_order, pay_order, fetch):
    customer = await make_customer()
    stranger = await make_customer()
    order = await place_order(customer)
    await pay_order(order)
    payment = await fetch(Payment, Payment.order_id == order.id)

    own = await async_client.get("/api/payments", headers=auth_headers(customer))
    other = await async_client.get("/api/payments", headers=auth_headers(stranger))
    admin = await async_client.get("/api/payments?status=COMPLETED", headers=auth_headers(stranger, role="admin"))
    detail = await async_client.get(f"/api/payments/{payment.id}", headers=auth_headers(customer))
    foreign = await async_client.get(f"/api/payments/{payment.id}", headers=auth_headers(stranger))

    assert own.status_code == 200
    assert own.json()["total"] == 1
    assert own.json()["items"][0]["orderId"] == str(order.id)
    assert other.json()["total"] == 0
    assert admin.json()["total"] == 1
    assert detail.status_code == 200
    data = detail.json()
    assert data["status"] == "COMPLETED"
    assert Decimal(data["amount"]) == Decimal("50.00")
    assert data["invoiceNumber"].startswith("INV-")
    assert data["order"]["status"] == "payment_confirmed"
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_promo_preview(async_client, make_customer, make_promo, auth_headers):
    customer = await make_customer()
    await make_promo("SAVE10")

    response = await async_client.post(
        "/api/promos/validate",
        json={
            "code": "save10",
            "items": [{"productId": "tee", "quantity": 2, "unitPrice": "25.00"}],
        },
        headers=auth_headers(customer),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is True
    assert data["code"] == "SAVE10"
    assert Decimal(data["discountAmount"]) == Decimal("5.00")
    assert Decimal(data["discountPercentage"]) == Decimal("10")


@pytest.mark.asyncio
async def test_promo_preview_rejection(async_client, make_customer, make_promo, auth_headers):
    customer = await make_customer()
    await make_promo("BIG", min_order_amount=Decimal("100.00"))

    response = await async_client.post(
        "/api/promos/validate",
        json={"code": "BIG", "cartTotal": "20.00"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    assert response.json()["error"]["reason"] == "BELOW_MINIMUM"


@pytest.mark.asyncio
async def test_points_summary(async_client, make_customer, auth_headers):
    customer = await make_customer(points=1250)

    response = await async_client.get("/api/points", headers=auth_headers(customer))

    assert response.status_code == 200
    data = response.json()
    assert data["balance"] == 1250
    assert Decimal(data["balanceValue"]) == Decimal("12.50")
    assert data["minRedeemable"] == 500


@pytest.mark.asyncio
async def test_webhook_missing_signature(async_client):
    response = await async_client.post("/api/webhooks/stripe", content=b"{}")

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "WebhookSignatureError"


@pytest.mark.asyncio
async def test_webhook_bad_signature(signed_webhook, make_event):
    response = await signed_webhook(make_event("customer.created", {}), secret="whsec_wrong")

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "WebhookSignatureError"


@pytest.mark.asyncio
async def test_webhook_stale_timestamp(signed_webhook, make_event):
    response = await signed_webhook(make_event("customer.created", {}), timestamp=int(time.time()) - 3600)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_invalid_json(async_client, stripe_signature):
    payload = "not json"

    response = await async_client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": stripe_signature(payload)},
    )

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "ValidationError"


@pytest.mark.asyncio
async def test_webhook_confirms_payment_once(signed_webhook, make_customer, place_order, checkout_completed, fetch):
    """Test a verified checkout event confirms the order and redelivery is acknowledged."""
    customer = await make_customer()
    order = await place_order(customer)
    event = checkout_completed(order)

    first = await signed_webhook(event)
    second = await signed_webhook(event)

    assert first.status_code == 200
    assert first.json() == {"received": True, "outcome": "processed"}
    assert second.status_code == 200
    assert second.json()["outcome"] == "duplicate"

    stored = await fetch(Order, Order.id == order.id)
    assert stored.status == "payment_confirmed"


@pytest.mark.asyncio
async def test_webhook_unknown_order_returns_500(signed_webhook, make_event):
    """Unreconcilable events fail so the gateway retries them."""
    event = make_event(
        "checkout.session.completed",
        {"id": "cs_test_missing", "payment_status": "paid", "metadata": {"orderId": str(uuid4())}},
    )

    response = await signed_webhook(event)

    assert response.status_code == 500
    assert response.json()["error"]["type"] == "ReconciliationError"


@pytest.mark.asyncio
async def test_webhook_unhandled_type(signed_webhook, make_event):
    response = await signed_webhook(make_event("customer.created", {"id": "cus_1"}))

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"
