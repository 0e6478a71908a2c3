"""Domain events for the InventoryRecord aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="InventoryRecord")
class StockReserved:
    """Stock was set aside for a checkout in progress."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    reference = String()
    reserved_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class ReservationReleased:
    """A reservation was reversed and its quantity returned to available stock."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_available = Integer(required=True)
    released_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class ReservationCommitted:
    """A reservation became permanent; the stock is sold."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    committed_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class StockAdjusted:
    """Available stock was corrected or replenished outside of reservations."""

    __version__ = 1

    unit_id = Identifier(required=True)
    delta = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    reason = String()
    adjusted_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class ReservationRestored:
    """A committed sale was undone before shipping and its quantity put back."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_available = Integer(required=True)
    restored_at = DateTime(required=True)


@storefront.event(part_of="InventoryRecord")
class ReservationClosed:
    """A committed reservation was dropped from the record once its goods shipped."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    closed_at = DateTime(required=True)
