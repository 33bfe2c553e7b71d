"""
lifecycle.py — Order Status Lattice and Transition Rules

Order statuses form a monotonic lattice:

    created < pending_payment < expired < invalid < paid

`created -> pending_payment` happens only through invoice binding. Processor
events may move an order that already has an invoice to a strictly higher
rank. This makes `paid` dominant (nothing leaves it), lets a late settlement
promote a provisionally expired order, and turns redelivered events into
no-ops.
"""

from enum import Enum
from typing import Optional

from .errors import UnrecognizedEventKind


class OrderStatus(str, Enum):
    CREATED = "created"
    PENDING_PAYMENT = "pending_payment"
    EXPIRED = "expired"
    INVALID = "invalid"
    PAID = "paid"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def is_final(self) -> bool:
        return self in FINAL_STATUSES


class EventKind(str, Enum):
    SETTLED = "settled"
    EXPIRED = "expired"
    INVALID = "invalid"


_RANK = {
    OrderStatus.CREATED: 0,
    OrderStatus.PENDING_PAYMENT: 1,
    OrderStatus.EXPIRED: 2,
    OrderStatus.INVALID: 3,
    OrderStatus.PAID: 4,
}

FINAL_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.EXPIRED, OrderStatus.INVALID})

# Processor event types (BTCPay Greenfield webhook naming)
PROCESSOR_EVENT_TYPES = {
    "InvoiceSettled": EventKind.SETTLED,
    "InvoiceExpired": EventKind.EXPIRED,
    "InvoiceInvalid": EventKind.INVALID,
}

_EVENT_TARGET = {
    EventKind.SETTLED: OrderStatus.PAID,
    EventKind.EXPIRED: OrderStatus.EXPIRED,
    EventKind.INVALID: OrderStatus.INVALID,
}


def event_kind_for(event_type: str) -> EventKind:
    """
    Maps a processor event type onto an `EventKind`.

    Raises:
        UnrecognizedEventKind: For any type outside the known set. The set of
            processor event types is open, so callers treat this as "ignore".
    """
    try:
        return PROCESSOR_EVENT_TYPES[event_type]
    except KeyError:
        raise UnrecognizedEventKind(event_type) from None


def next_status(current: OrderStatus, kind: EventKind) -> Optional[OrderStatus]:
    """
    Returns the status an order moves to when `kind` is applied, or None if
    the event does not change the order.

    Events never apply to an order without a bound invoice (`created`), and
    never move an order down or sideways in the lattice.
    """
    if current is OrderStatus.CREATED:
        return None
    target = _EVENT_TARGET[kind]
    if target.rank <= current.rank:
        return None
    return target


def status_label(status: OrderStatus) -> str:
    return status.value.replace("_", " ").upper()


STATUS_MESSAGES = {
    OrderStatus.CREATED: "Order created. Waiting for payment to be initiated.",
    OrderStatus.PENDING_PAYMENT: "Waiting for payment confirmation...",
    OrderStatus.PAID: "Payment confirmed! Your order is on the way.",
    OrderStatus.EXPIRED: "Invoice expired. Please try again.",
    OrderStatus.INVALID: "Payment could not be validated. Please contact support.",
}
