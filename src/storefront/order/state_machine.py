"""Order state machine.

An order carries two independent statuses. Fulfillment follows the goods:

    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    PENDING | CONFIRMED → CANCELLED

Payment follows the money:

    PENDING → PAID | FAILED
    FAILED → PENDING          (a new payment intent)
    PAID → REFUNDED

Legality lives in the two tables below; the Order aggregate consults them
before changing any field.
"""

from enum import Enum

from storefront.errors import InvalidTransition


class FulfillmentStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    ADMIN = "Admin"


FULFILLMENT_TRANSITIONS = {
    FulfillmentStatus.PENDING: {FulfillmentStatus.CONFIRMED, FulfillmentStatus.CANCELLED},
    FulfillmentStatus.CONFIRMED: {FulfillmentStatus.PROCESSING, FulfillmentStatus.CANCELLED},
    FulfillmentStatus.PROCESSING: {FulfillmentStatus.SHIPPED},
    FulfillmentStatus.SHIPPED: {FulfillmentStatus.DELIVERED},
    FulfillmentStatus.DELIVERED: set(),  # Terminal
    FulfillmentStatus.CANCELLED: set(),  # Terminal
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}


def can_transition(current: Enum, target: Enum) -> bool:
    table = FULFILLMENT_TRANSITIONS if isinstance(current, FulfillmentStatus) else PAYMENT_TRANSITIONS
    return target in table.get(current, set())


def assert_transition(current: Enum, target: Enum) -> None:
    """Raise ``InvalidTransition`` unless ``current → target`` is in the table for its path."""
    if not can_transition(current, target):
        field = "fulfillment_status" if isinstance(current, FulfillmentStatus) else "payment_status"
        raise InvalidTransition(current.value, target.value, field=field)
