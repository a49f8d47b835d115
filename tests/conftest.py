"""
Shared fixtures: per-test SQLite database, app with injected session
factory, and builders for customers, promos, orders and gateway events.
"""
import hashlib
import hmac
import json
import os
import time
import uuid
from decimal import Decimal
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["RESEND_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import func, select

from orderflow.core.auth import Principal
from orderflow.core.config import settings
from orderflow.core.database import Base, create_engine, create_session_factory, get_session_factory
from orderflow.models import Customer, Design, Promo
from orderflow.schemas.order import CheckoutRequest
from orderflow.services.accounting import AccountingService
from orderflow.services.notification_service import NotificationService
from orderflow.services.order_transactions import OrderTransactionManager
from orderflow.services.payment_events import PaymentEventProcessor

WEBHOOK_SECRET = "whsec_test_secret"

SHIPPING_ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "12 St James's Square",
    "city": "London",
    "postcode": "SW1Y 4JH",
    "country": "GB",
}


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orderflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory):
    from orderflow.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    """Synchronous client for endpoints that never touch the database."""
    from orderflow.main import app

    return TestClient(app)


@pytest.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def count_rows(session_factory):
    async def _count(model, *criteria) -> int:
        async with session_factory() as session:
            stmt = select(func.count()).select_from(model).where(*criteria)
            return (await session.execute(stmt)).scalar_one()

    return _count


@pytest.fixture
def fetch(session_factory):
    """Load the first row matching ``criteria`` in a fresh session."""

    async def _fetch(model, *criteria):
        async with session_factory() as session:
            result = await session.execute(select(model).where(*criteria))
            return result.scalars().first()

    return _fetch


@pytest.fixture
def make_customer(session_factory):
    async def _make(
        email: Optional[str] = None,
        points: int = 0,
        name: str = "Test Customer",
    ) -> Customer:
        customer = Customer(
            email=email or f"customer-{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            loyalty_points=points,
        )
        async with session_factory() as session:
            async with session.begin():
                session.add(customer)
        return customer

    return _make


@pytest.fixture
def make_promo(session_factory):
    async def _make(code: str = "SAVE10", **overrides: Any) -> Promo:
        fields: dict[str, Any] = {
            "name": code,
            "discount_type": "PERCENTAGE",
            "discount_value": Decimal("10"),
            "scope": "ALL_PRODUCTS",
            "max_uses": None,
            "max_uses_per_user": 1,
            "is_active": True,
        }
        fields.update(overrides)
        promo = Promo(code=code.upper(), **fields)
        async with session_factory() as session:
            async with session.begin():
                session.add(promo)
        return promo

    return _make


@pytest.fixture
def make_design(session_factory):
    async def _make(customer_id: uuid.UUID, title: str = "Sunset") -> Design:
        design = Design(customer_id=customer_id, title=title)
        async with session_factory() as session:
            async with session.begin():
                session.add(design)
        return design

    return _make


@pytest.fixture
def principal_for():
    def _principal(customer: Customer, role: str = "customer") -> Principal:
        return Principal(customer_id=customer.id, email=customer.email, role=role)

    return _principal


@pytest.fixture
def auth_headers():
    def _headers(customer: Customer, role: str = "customer") -> dict[str, str]:
        token = jwt.encode(
            {"sub": str(customer.id), "email": customer.email, "role": role},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def checkout_payload():
    def _payload(
        items: Optional[list[dict[str, Any]]] = None,
        **extra: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": items
            if items is not None
            else [{"productId": "tshirt-classic", "quantity": 2, "unitPrice": "25.00"}],
            "shippingAddress": SHIPPING_ADDRESS,
        }
        payload.update(extra)
        return payload

    return _payload


@pytest.fixture
def order_manager(session_factory):
    return OrderTransactionManager(session_factory)


@pytest.fixture
def place_order(order_manager, principal_for, checkout_payload):
    async def _place(customer: Customer, **extra: Any):
        request = CheckoutRequest.model_validate(checkout_payload(**extra))
        return await order_manager.create_order(principal_for(customer), request)

    return _place


@pytest.fixture
def make_event():
    def _event(event_type: str, obj: dict[str, Any], event_id: Optional[str] = None) -> dict[str, Any]:
        return {
            "id": event_id or f"evt_{uuid.uuid4().hex}",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }

    return _event


@pytest.fixture
def checkout_completed(make_event):
    """checkout.session.completed for an order, paid in full."""

    def _event(order, event_id: Optional[str] = None, payment_status: str = "paid") -> dict[str, Any]:
        return make_event(
            "checkout.session.completed",
            {
                "id": f"cs_test_{order.id.hex[:12]}",
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": f"pi_test_{order.id.hex[:12]}",
                "amount_total": int(order.total_price * 100),
                "currency": "gbp",
                "metadata": {"orderId": str(order.id)},
                "customer_details": {"email": "customer@example.com"},
            },
            event_id=event_id,
        )

    return _event


@pytest.fixture
def notifier():
    notifier = MagicMock(spec=NotificationService)
    notifier.send_invoice = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def accounting(session_factory, notifier):
    return AccountingService(session_factory, notifier=notifier)


@pytest.fixture
def processor(session_factory, accounting):
    return PaymentEventProcessor(session_factory, accounting=accounting)


@pytest.fixture
def pay_order(processor, checkout_completed):
    """Confirm payment for an order through the webhook processor."""

    async def _pay(order):
        return await processor.process(checkout_completed(order))

    return _pay


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def stripe_signature():
    return sign


@pytest.fixture
def signed_webhook(async_client):
    async def _post(event: dict[str, Any], secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None):
        payload = json.dumps(event)
        return await async_client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={
                "Content-Type": "application/json",
                "Stripe-Signature": sign(payload, secret, timestamp),
            },
        )

    return _post
