"""
Order API routes: checkout, listing, tracking, cancellation and admin
fulfilment transitions.
"""
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from orderflow.core.auth import AdminPrincipal, CurrentPrincipal
from orderflow.core.config import settings
from orderflow.core.database import DbSessionFactory
from orderflow.models.order import OrderStatus
from orderflow.schemas.order import (
    CancellationRequestCreate,
    CancellationRequestResponse,
    CancellationReviewRequest,
    CancellationReviewResponse,
    CancelOrderRequest,
    CheckoutRequest,
    OrderResponse,
    OrderStatusUpdate,
    OrderTrackingResponse,
    PaginatedOrdersResponse,
)
from orderflow.services.cancellation_requests import CancellationRequestService
from orderflow.services.order_transactions import OrderTransactionManager

router = APIRouter(prefix="/orders", tags=["orders"])


async def get_order_manager(session_factory: DbSessionFactory) -> OrderTransactionManager:
    """Dependency to get the order transaction manager."""
    return OrderTransactionManager(session_factory)


OrderManager = Annotated[OrderTransactionManager, Depends(get_order_manager)]


async def get_cancellation_service(session_factory: DbSessionFactory) -> CancellationRequestService:
    return CancellationRequestService(session_factory)


Cancellations = Annotated[CancellationRequestService, Depends(get_cancellation_service)]


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    checkout: CheckoutRequest,
    principal: CurrentPrincipal,
    manager: OrderManager,
) -> OrderResponse:
    """
    Place an order from the storefront checkout.

    Promo redemption and points debit happen in the same transaction as the
    order insert; a rejection returns a structured 4xx and persists nothing.
    """
    order = await manager.create_order(principal, checkout)
    return OrderResponse.model_validate(order)


@router.get("", response_model=PaginatedOrdersResponse)
async def list_orders(
    principal: CurrentPrincipal,
    manager: OrderManager,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, alias="pageSize"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
) -> PaginatedOrdersResponse:
    """List the caller's orders (all orders for admins), newest first."""
    orders, total = await manager.list_orders(
        principal,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return PaginatedOrdersResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
        has_more=page * page_size < total,
    )


@router.get("/track/{share_token}", response_model=OrderTrackingResponse)
async def track_order(share_token: str, manager: OrderManager) -> OrderTrackingResponse:
    """Public order tracking by share token. No authentication."""
    order = await manager.track_order(share_token)
    return OrderTrackingResponse(
        reference=order.reference,
        status=order.status,
        item_count=sum(item.quantity for item in order.items),
        total_price=order.total_price,
        currency=order.currency,
        created_at=order.created_at,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, principal: CurrentPrincipal, manager: OrderManager) -> OrderResponse:
    order = await manager.get_order(principal, order_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    principal: CurrentPrincipal,
    manager: OrderManager,
    body: Optional[CancelOrderRequest] = None,
) -> OrderResponse:
    """Cancel an order that has not been paid yet."""
    order = await manager.cancel_order(principal, order_id, notes=body.notes if body else None)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    update: OrderStatusUpdate,
    admin: AdminPrincipal,
    manager: OrderManager,
) -> OrderResponse:
    """Admin fulfilment transition, validated against the order lifecycle."""
    order = await manager.advance_order_status(admin, order_id, update.status, notes=update.notes)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel-request",
    response_model=CancellationRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_cancellation(
    order_id: UUID,
    body: CancellationRequestCreate,
    principal: CurrentPrincipal,
    cancellations: Cancellations,
) -> CancellationRequestResponse:
    """Ask for a paid order to be cancelled. An admin reviews the request."""
    request = await cancellations.request_cancellation(principal, order_id, body.reason, notes=body.notes)
    return CancellationRequestResponse.model_validate(request)


@router.get("/{order_id}/cancel-request", response_model=CancellationRequestResponse)
async def get_cancellation_request(
    order_id: UUID,
    principal: CurrentPrincipal,
    cancellations: Cancellations,
) -> CancellationRequestResponse:
    request = await cancellations.get_request(principal, order_id)
    return CancellationRequestResponse.model_validate(request)


@router.post("/{order_id}/cancel-request/review", response_model=CancellationReviewResponse)
async def review_cancellation_request(
    order_id: UUID,
    body: CancellationReviewRequest,
    admin: AdminPrincipal,
    cancellations: Cancellations,
) -> CancellationReviewResponse:
    """
    Approve or reject a cancellation request.

    Approving a paid order opens a refund resolution; the order moves to
    ``refunded`` once the gateway reports the refund.
    """
    result = await cancellations.review(admin, order_id, approve=body.action == "APPROVE", notes=body.notes)
    return CancellationReviewResponse(
        request=CancellationRequestResponse.model_validate(result.request),
        order_status=result.order.status,
        awaiting_refund=result.awaiting_refund,
    )
