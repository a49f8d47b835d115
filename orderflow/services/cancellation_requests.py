"""
Cancellation requests for paid orders.

A customer can ask to cancel an order that has been paid but has not gone
into production. An admin then approves or rejects the request. Rejection
restores the status the request was raised from. Approval of an order with
a completed payment opens a refund resolution and leaves the order in
``cancellation_requested``: the gateway's refund event moves it to
``refunded`` and books the refund, so the Payment row and the ledger only
change once money has actually gone back.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from orderflow.core.auth import Principal
from orderflow.core.database import SessionFactory
from orderflow.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from orderflow.core.logging import get_logger
from orderflow.core.utils import utcnow
from orderflow.models.audit import ActorType
from orderflow.models.cancellation import CancellationRequest, CancellationRequestStatus
from orderflow.models.order import CancellationReason, Order, OrderStatus
from orderflow.models.payment import PaymentStatus
from orderflow.models.resolution import IssueResolution, ResolutionStatus, ResolutionType
from orderflow.repositories.order import OrderRepository
from orderflow.repositories.payment import PaymentRepository
from orderflow.services.audit import add_audit_entry
from orderflow.services.order_state import CANCEL_REQUESTABLE_STATUSES, ensure_transition

logger = get_logger(__name__)

CUSTOMER_REASONS = frozenset(
    {
        CancellationReason.CUSTOMER_REQUEST,
        CancellationReason.DUPLICATE_ORDER,
        CancellationReason.OTHER,
    }
)


@dataclass
class ReviewResult:
    request: CancellationRequest
    order: Order
    awaiting_refund: bool = False


class CancellationRequestService:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def request_cancellation(
        self,
        principal: Principal,
        order_id: UUID,
        reason: CancellationReason,
        notes: Optional[str] = None,
    ) -> CancellationRequest:
        """
        Raise a cancellation request for one of the caller's paid orders.

        Raises:
            ValidationError: reason not open to customers
            NotFoundError: unknown or foreign order
            ConflictError: a request already exists for the order
            InvalidTransitionError: order is unpaid, in production or closed
        """
        if reason not in CUSTOMER_REASONS:
            raise ValidationError("Invalid cancellation reason", field="reason")

        async with self.session_factory() as session:
            async with session.begin():
                repo = OrderRepository(session)
                order = await repo.get_by_id(order_id)
                if order is None or order.customer_id != principal.customer_id:
                    raise NotFoundError("Order not found")

                if await repo.get_cancellation_request(order.id) is not None:
                    raise ConflictError("A cancellation request already exists for this order")

                previous = order.status
                if OrderStatus(previous) not in CANCEL_REQUESTABLE_STATUSES:
                    raise InvalidTransitionError(
                        current=previous,
                        target=OrderStatus.CANCELLATION_REQUESTED.value,
                        message=(
                            "Unpaid orders can be cancelled directly"
                            if previous == OrderStatus.PENDING.value
                            else f"Cancellation cannot be requested for a {previous} order"
                        ),
                    )
                ensure_transition(previous, OrderStatus.CANCELLATION_REQUESTED)

                if not await repo.compare_and_set_status(order, previous, OrderStatus.CANCELLATION_REQUESTED.value):
                    raise InvalidTransitionError(
                        current=previous,
                        target=OrderStatus.CANCELLATION_REQUESTED.value,
                        message="Order status changed, please retry",
                    )

                request = CancellationRequest(
                    order_id=order.id,
                    reason=reason.value,
                    notes=notes,
                    status=CancellationRequestStatus.PENDING.value,
                    previous_status=previous,
                    created_at=utcnow(),
                )
                session.add(request)

                add_audit_entry(
                    session,
                    action="CANCELLATION_REQUESTED",
                    entity_type="ORDER",
                    entity_id=order.id,
                    actor_type=ActorType.CUSTOMER,
                    actor_id=principal.customer_id,
                    previous_state={"status": previous},
                    new_state={"status": order.status},
                    metadata={"reason": reason.value},
                )

        logger.info("Cancellation requested", order_id=str(order_id), reason=reason.value)
        return request

    async def get_request(self, principal: Principal, order_id: UUID) -> CancellationRequest:
        async with self.session_factory() as session:
            repo = OrderRepository(session)
            order = await repo.get_by_id(order_id)
            if order is None or (order.customer_id != principal.customer_id and not principal.is_admin):
                raise NotFoundError("Order not found")
            request = await repo.get_cancellation_request(order_id)
        if request is None:
            raise NotFoundError("No cancellation request for this order")
        return request

    async def review(
        self,
        principal: Principal,
        order_id: UUID,
        *,
        approve: bool,
        notes: Optional[str] = None,
    ) -> ReviewResult:
        """
        Approve or reject a pending cancellation request.

        Raises:
            NotFoundError: unknown order or no request
            ConflictError: request already reviewed or order moved on
        """
        async with self.session_factory() as session:
            async with session.begin():
                repo = OrderRepository(session)
                order = await repo.get_by_id(order_id)
                if order is None:
                    raise NotFoundError("Order not found")
                request = await repo.get_cancellation_request(order_id)
                if request is None:
                    raise NotFoundError("No cancellation request for this order")
                if request.status != CancellationRequestStatus.PENDING.value:
                    raise ConflictError(f"Cancellation request has already been {request.status.lower()}")

                previous = order.status
                if previous != OrderStatus.CANCELLATION_REQUESTED.value:
                    raise ConflictError(f"Order is {previous}, not awaiting cancellation review")

                awaiting_refund = False
                target = None
                fields = {}
                if not approve:
                    target = ensure_transition(previous, request.previous_status)
                    request.status = CancellationRequestStatus.REJECTED.value
                else:
                    payment = await PaymentRepository(session).get_by_order_id(order.id)
                    awaiting_refund = payment is not None and payment.status == PaymentStatus.COMPLETED.value
                    request.status = CancellationRequestStatus.APPROVED.value
                    if awaiting_refund:
                        session.add(
                            IssueResolution(
                                order_id=order.id,
                                type=ResolutionType.REFUND.value,
                                status=ResolutionStatus.AWAITING_REFUND.value,
                                notes=notes or f"Cancellation approved: {request.reason}",
                            )
                        )
                    else:
                        target = ensure_transition(previous, OrderStatus.CANCELLED)
                        fields = {
                            "cancellation_reason": request.reason,
                            "cancellation_notes": notes or request.notes,
                            "cancelled_at": utcnow(),
                        }

                if target is not None and not await repo.compare_and_set_status(
                    order, previous, target.value, **fields
                ):
                    raise ConflictError("Order status changed, please retry")

                request.reviewed_at = utcnow()
                request.reviewed_by = principal.customer_id
                request.review_notes = notes or (None if approve else "Cancellation request rejected")

                add_audit_entry(
                    session,
                    action="CANCELLATION_APPROVED" if approve else "CANCELLATION_REJECTED",
                    entity_type="ORDER",
                    entity_id=order.id,
                    actor_type=ActorType.ADMIN,
                    actor_id=principal.customer_id,
                    previous_state={"status": previous},
                    new_state={"status": order.status},
                    metadata={"awaiting_refund": awaiting_refund, "notes": notes},
                )

        logger.info(
            "Cancellation request reviewed",
            order_id=str(order_id),
            approved=approve,
            awaiting_refund=awaiting_refund,
            status=order.status,
        )
        return ReviewResult(request=request, order=order, awaiting_refund=awaiting_refund)
