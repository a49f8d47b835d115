"""
Promo preview and loyalty points API routes.
"""
from decimal import Decimal

from fastapi import APIRouter

from orderflow.core.auth import CurrentPrincipal
from orderflow.core.config import settings
from orderflow.core.database import DbSession
from orderflow.core.utils import to_money
from orderflow.schemas.loyalty import PointsSummaryResponse, PointsTransactionResponse
from orderflow.schemas.promo import PromoValidateRequest, PromoValidateResponse
from orderflow.services.loyalty_ledger import LoyaltyLedger, points_to_discount
from orderflow.services.order_transactions import priced_items
from orderflow.services.promo_ledger import PromoLedger

router = APIRouter(tags=["loyalty"])


@router.post("/promos/validate", response_model=PromoValidateResponse)
async def validate_promo(
    request: PromoValidateRequest,
    principal: CurrentPrincipal,
    session: DbSession,
) -> PromoValidateResponse:
    """
    Check a promo code against the cart without redeeming it.

    Rejections come back as a 400 with the rule's ``reason``.
    """
    items = priced_items(request.items)
    cart_total = request.cart_total
    if cart_total is None:
        cart_total = sum((item.line_total for item in items), Decimal("0"))

    quote = await PromoLedger(session).preview(
        request.code,
        items,
        cart_total,
        customer_id=principal.customer_id,
        email=principal.email,
    )
    return PromoValidateResponse(
        valid=True,
        code=quote.promo.code,
        discount_amount=quote.discount_amount,
        discount_percentage=quote.discount_percentage,
        eligible_total=to_money(quote.eligible_total),
    )


@router.get("/points", response_model=PointsSummaryResponse)
async def get_points(principal: CurrentPrincipal, session: DbSession) -> PointsSummaryResponse:
    """Points balance, its monetary value and recent movements."""
    ledger = LoyaltyLedger(session)
    balance = await ledger.balance(principal.customer_id)
    history = await ledger.history(principal.customer_id)
    return PointsSummaryResponse(
        balance=balance,
        balance_value=points_to_discount(balance),
        min_redeemable=settings.min_points_to_redeem,
        history=[PointsTransactionResponse.model_validate(t) for t in history],
    )
