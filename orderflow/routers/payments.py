"""
Payment read API: the caller's payments, or every payment for admins.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from orderflow.core.auth import CurrentPrincipal
from orderflow.core.config import settings
from orderflow.core.database import DbSession
from orderflow.core.exceptions import NotFoundError
from orderflow.models.payment import PaymentStatus
from orderflow.repositories.payment import PaymentRepository
from orderflow.schemas.payment import PaginatedPaymentsResponse, PaymentResponse

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=PaginatedPaymentsResponse)
async def list_payments(
    principal: CurrentPrincipal,
    session: DbSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, alias="pageSize"),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
) -> PaginatedPaymentsResponse:
    """List payments newest first, scoped to the caller unless admin."""
    payments, total = await PaymentRepository(session).list_payments(
        customer_id=None if principal.is_admin else principal.customer_id,
        status=status_filter.value if status_filter else None,
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return PaginatedPaymentsResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
        has_more=page * page_size < total,
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: UUID, principal: CurrentPrincipal, session: DbSession) -> PaymentResponse:
    payment = await PaymentRepository(session).get_with_order(payment_id)
    if payment is None or (payment.order.customer_id != principal.customer_id and not principal.is_admin):
        raise NotFoundError("Payment not found")
    return PaymentResponse.model_validate(payment)
