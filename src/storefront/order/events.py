"""Domain events for the Order aggregate.

OrderCreated, OrderPaid and OrderCancelled are the facts customers hear
about; the notification side consumes them.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderCreated:
    """An order was placed at checkout and is awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier()
    email = String()
    lines = Text(required=True)  # JSON array of {unit_id, quantity, unit_price}
    total = Float(required=True)
    currency = String(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaid:
    """Payment was captured and the order is confirmed for fulfillment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    intent_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    email = String()
    paid_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentCapturedAfterCancel:
    """Money was captured for an order that had already been cancelled; it needs a refund."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    intent_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    email = String()
    captured_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    intent_id = Identifier(required=True)
    reason = String()
    failed_payment_count = Integer(required=True)
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentReopened:
    """A failed payment was reopened for another attempt."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reopened_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its stock handed back."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    previous_status = String(required=True)
    payment_status = String(required=True)
    email = String()
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderFulfillmentAdvanced:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    advanced_at = DateTime(required=True)
