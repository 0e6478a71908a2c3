"""Order numbers: ``ORD`` + ``yymmdd`` + a four-digit sequence that restarts daily.

The counter for each day is itself an aggregate, so the number is allocated
in the same unit of work that stores the order. Callers keep the day's lock
(``hold()``) from reading the sequence until that unit of work commits.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.utils.locks import KeyedLocks


@storefront.aggregate
class OrderSequence:
    day = Identifier(identifier=True, required=True)  # yymmdd
    last_value = Integer(default=0, min_value=0)

    def next_number(self):
        self.last_value = (self.last_value or 0) + 1
        return format_order_number(self.day, self.last_value)


def format_order_number(day: str, value: int) -> str:
    return f"ORD{day}{value:04d}"


class OrderNumberAllocator:
    def __init__(self, lock_timeout: float = 5.0) -> None:
        self.locks = KeyedLocks("order-number", timeout=lock_timeout)

    def sequence_for(self, now: datetime | None = None) -> OrderSequence:
        day = (now or datetime.now(UTC)).strftime("%y%m%d")
        try:
            return current_domain.repository_for(OrderSequence).get(day)
        except ObjectNotFoundError:
            return OrderSequence(day=day, last_value=0)

    def hold(self, now: datetime | None = None):
        day = (now or datetime.now(UTC)).strftime("%y%m%d")
        return self.locks.hold(day)
