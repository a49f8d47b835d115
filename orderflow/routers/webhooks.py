"""
Payment gateway webhook endpoint.

The signature is checked against the raw body before anything is parsed or
written. Duplicate and no-op deliveries are acknowledged with 200; an event
that cannot be reconciled returns 500 so the gateway retries it.
"""
import json
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Request

from orderflow.core.database import DbSessionFactory
from orderflow.core.exceptions import ValidationError
from orderflow.core.logging import get_logger
from orderflow.core.security import verify_webhook_signature
from orderflow.schemas.payment import WebhookResponse
from orderflow.services.payment_events import PaymentEventProcessor

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def get_event_processor(session_factory: DbSessionFactory) -> PaymentEventProcessor:
    """Dependency to get the payment event processor."""
    return PaymentEventProcessor(session_factory)


@router.post("/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    processor: Annotated[PaymentEventProcessor, Depends(get_event_processor)],
    stripe_signature: Annotated[Optional[str], Header()] = None,
) -> WebhookResponse:
    payload = await request.body()
    verify_webhook_signature(payload, stripe_signature)

    try:
        event = json.loads(payload)
    except ValueError:
        raise ValidationError("Invalid JSON payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid event payload")

    outcome = await processor.process(event)
    return WebhookResponse(outcome=outcome.value)
