"""Domain events for the PaymentIntent aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="PaymentIntent")
class PaymentIntentCreated:
    __version__ = 1

    intent_id = Identifier(required=True)
    order_id = Identifier(required=True)
    processor_intent_id = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    attempt_number = Integer(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="PaymentIntent")
class PaymentIntentSucceeded:
    __version__ = 1

    intent_id = Identifier(required=True)
    order_id = Identifier(required=True)
    processor_intent_id = String(required=True)
    succeeded_at = DateTime(required=True)


@storefront.event(part_of="PaymentIntent")
class PaymentIntentFailed:
    __version__ = 1

    intent_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="PaymentIntent")
class PaymentIntentCanceled:
    __version__ = 1

    intent_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    canceled_at = DateTime(required=True)
