"""
Order lifecycle: the closed set of allowed status moves.

Every status change goes through ``ensure_transition`` so a redelivered or
out-of-order event can never move an order backwards. The only step back is
a rejected cancellation request, which restores the status it was raised
from.
"""
from orderflow.core.exceptions import InvalidTransitionError
from orderflow.models.order import OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAYMENT_CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.PAYMENT_CONFIRMED: frozenset(
        {
            OrderStatus.CONFIRMED,
            OrderStatus.PRINTING,
            OrderStatus.CANCELLATION_REQUESTED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        }
    ),
    OrderStatus.CONFIRMED: frozenset(
        {
            OrderStatus.PRINTING,
            OrderStatus.CANCELLATION_REQUESTED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        }
    ),
    OrderStatus.PRINTING: frozenset({OrderStatus.SHIPPED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLATION_REQUESTED: frozenset(
        {
            OrderStatus.PAYMENT_CONFIRMED,
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        }
    ),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Statuses that mean payment has already been captured and recorded
PAID_STATUSES = frozenset(
    {
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.CONFIRMED,
        OrderStatus.PRINTING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLATION_REQUESTED,
    }
)

# Targets an admin may set directly; refunds only come from the gateway
FULFILMENT_TARGETS = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.PRINTING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }
)

# Statuses a customer can ask to have cancelled after paying
CANCEL_REQUESTABLE_STATUSES = frozenset({OrderStatus.PAYMENT_CONFIRMED, OrderStatus.CONFIRMED})


def can_transition(current: str | OrderStatus, target: str | OrderStatus) -> bool:
    try:
        current_status = OrderStatus(current)
        target_status = OrderStatus(target)
    except ValueError:
        return False
    return target_status in ALLOWED_TRANSITIONS[current_status]


def ensure_transition(current: str | OrderStatus, target: str | OrderStatus) -> OrderStatus:
    """
    Validate a status move and return the target as an ``OrderStatus``.

    Raises:
        InvalidTransitionError: the move is not in the transition table
    """
    current_value = getattr(current, "value", current)
    target_value = getattr(target, "value", target)

    if not can_transition(current, target):
        raise InvalidTransitionError(
            current=current_value,
            target=target_value,
            message=f"Cannot move order from {current_value} to {target_value}",
        )
    return OrderStatus(target)


def is_terminal(status: str | OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def is_already_paid(status: str | OrderStatus) -> bool:
    """True once the order has reached payment_confirmed or any later step."""
    return OrderStatus(status) in PAID_STATUSES
