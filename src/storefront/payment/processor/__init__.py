"""Payment processor factory.

Provides get_processor() / set_processor() to swap implementations. The
FakeProcessor is the default for development and testing; a production
adapter is installed with set_processor() at startup.
"""

from storefront.payment.processor.fake_adapter import FakeProcessor
from storefront.payment.processor.port import PaymentProcessor

_current_processor: PaymentProcessor | None = None


def get_processor() -> PaymentProcessor:
    """Return the current payment processor. Defaults to FakeProcessor."""
    global _current_processor
    if _current_processor is None:
        _current_processor = FakeProcessor()
    return _current_processor


def set_processor(processor: PaymentProcessor) -> None:
    """Override the active payment processor (useful for tests)."""
    global _current_processor
    _current_processor = processor


def reset_processor() -> None:
    """Reset to default processor."""
    global _current_processor
    _current_processor = None
