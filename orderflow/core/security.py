"""
Security utilities: bearer token decoding, webhook signatures, share tokens.
"""
import secrets
from typing import Any

import stripe
from jose import JWTError, jwt

from orderflow.core.config import settings
from orderflow.core.exceptions import WebhookSignatureError
from orderflow.core.logging import get_logger

logger = get_logger(__name__)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token issued by the auth service."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as e:
        logger.warning("Invalid JWT token", error=str(e))
        return None


def verify_webhook_signature(payload: bytes, signature: str | None) -> None:
    """
    Verify a Stripe webhook signature header against the raw request body.

    Raises:
        WebhookSignatureError: header missing, secret unset, or mismatch
    """
    if not signature:
        raise WebhookSignatureError("Missing stripe-signature header")

    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook secret not configured, rejecting webhook")
        raise WebhookSignatureError("Webhook secret not configured")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            signature,
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
        logger.warning("Webhook signature verification failed", error=str(e))
        raise WebhookSignatureError(f"Webhook Error: {e}") from e


def generate_share_token() -> str:
    """Generate a URL-safe order tracking token."""
    return secrets.token_urlsafe(settings.share_token_length)[: settings.share_token_length]
