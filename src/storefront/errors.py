"""Error taxonomy for the storefront core.

Validation-style failures subclass Protean's ``ValidationError`` so they carry
field-keyed messages like every other domain rule violation. Processor and
locking failures are infrastructure conditions and stand on their own.
"""

from protean.exceptions import ValidationError


class InvalidQuantity(ValidationError):
    def __init__(self, quantity, allow_zero=False):
        self.quantity = quantity
        bound = "zero or a positive integer" if allow_zero else "a positive integer"
        super().__init__({"quantity": [f"Quantity must be {bound}, got {quantity!r}"]})


class EmptyCart(ValidationError):
    def __init__(self, owner_key):
        self.owner_key = owner_key
        super().__init__({"cart": ["Cannot check out an empty cart"]})


class InsufficientStock(ValidationError):
    """Raised when one or more units cannot cover the requested quantity."""

    def __init__(self, unit_ids, detail=None):
        self.unit_ids = sorted(set(str(unit_id) for unit_id in unit_ids))
        message = detail or f"Insufficient stock for: {', '.join(self.unit_ids)}"
        super().__init__({"unit_ids": [message]})


class DuplicateIntent(ValidationError):
    def __init__(self, order_id, intent_id):
        self.order_id = order_id
        self.intent_id = intent_id
        super().__init__({"order_id": [f"Payment intent {intent_id} is still open for order {order_id}"]})


class InvalidTransition(ValidationError):
    """Raised for any state change the transition tables do not allow."""

    def __init__(self, current, target, field="status", detail=None):
        self.current = current
        self.target = target
        super().__init__({field: [detail or f"Cannot transition from {current} to {target}"]})


class LockTimeout(Exception):
    """A keyed lock could not be acquired within its timeout."""

    def __init__(self, key, timeout):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for {key}")


class PaymentProcessorError(Exception):
    def __init__(self, message, order_id=None, order_number=None):
        super().__init__(message)
        self.order_id = order_id
        self.order_number = order_number


class ProcessorUnavailable(PaymentProcessorError):
    """Transient processor failure; safe to retry."""


class ProcessorRejected(PaymentProcessorError):
    """The processor refused the request; terminal for that intent."""


class CheckoutAborted(Exception):
    """The caller gave up on a checkout before its order was stored."""

    def __init__(self, owner_key):
        self.owner_key = owner_key
        super().__init__(f"Checkout for {owner_key} was aborted")
