"""Tests for InventoryRecord: reservation arithmetic and settlement guards."""

import pytest
from protean.exceptions import ValidationError

from storefront.errors import InsufficientStock, InvalidQuantity, InvalidTransition
from storefront.inventory.events import (
    ReservationClosed,
    ReservationCommitted,
    ReservationReleased,
    ReservationRestored,
    StockAdjusted,
    StockReserved,
)
from storefront.inventory.record import InventoryRecord, ReservationStatus


def _record(available=10):
    record = InventoryRecord.create("sku-a")
    record.adjust(available, reason="initial stock")
    record._events.clear()
    return record


class TestReserve:
    def test_reserve_decrements_available(self):
        record = _record(10)
        reservation = record.reserve(3, reference="attempt-1")

        assert record.available_quantity == 7
        assert reservation.quantity == 3
        assert reservation.status == ReservationStatus.ACTIVE.value
        assert reservation.reference == "attempt-1"

    def test_reserve_exact_remaining_stock(self):
        record = _record(2)
        record.reserve(2)
        assert record.available_quantity == 0

    def test_reserve_more_than_available_names_the_unit(self):
        record = _record(2)
        with pytest.raises(InsufficientStock) as exc:
            record.reserve(3)

        assert exc.value.unit_ids == ["sku-a"]
        assert record.available_quantity == 2
        assert not record.reservations

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_reserve_rejects_non_positive_integers(self, quantity):
        record = _record(5)
        with pytest.raises(InvalidQuantity):
            record.reserve(quantity)
        assert record.available_quantity == 5

    def test_invalid_quantity_is_a_validation_error(self):
        record = _record(5)
        with pytest.raises(ValidationError):
            record.reserve(0)

    def test_reserve_bumps_version(self):
        record = _record(5)
        version = record.version
        record.reserve(1)
        assert record.version == version + 1

    def test_reserve_raises_event(self):
        record = _record(5)
        reservation = record.reserve(2, reference="attempt-1")

        event = record._events[-1]
        assert isinstance(event, StockReserved)
        assert event.reservation_id == str(reservation.id)
        assert event.previous_available == 5
        assert event.new_available == 3


class TestRelease:
    def test_release_returns_quantity(self):
        record = _record(5)
        reservation = record.reserve(2)

        assert record.release(reservation.id) is True
        assert record.available_quantity == 5
        assert record.find_reservation(reservation.id) is None
        assert isinstance(record._events[-1], ReservationReleased)

    def test_release_twice_is_a_noop(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.release(reservation.id)

        assert record.release(reservation.id) is False
        assert record.available_quantity == 5

    def test_release_unknown_reservation_is_a_noop(self):
        record = _record(5)
        assert record.release("no-such-reservation") is False

    def test_release_after_commit_is_rejected(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)

        with pytest.raises(InvalidTransition):
            record.release(reservation.id)
        assert record.available_quantity == 3


class TestCommit:
    def test_commit_keeps_stock_taken(self):
        record = _record(5)
        reservation = record.reserve(2)

        assert record.commit(reservation.id) is True
        assert record.available_quantity == 3
        assert record.find_reservation(reservation.id).status == ReservationStatus.COMMITTED.value
        assert isinstance(record._events[-1], ReservationCommitted)

    def test_commit_twice_is_a_noop(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)
        version = record.version

        assert record.commit(reservation.id) is False
        assert record.version == version

    def test_commit_after_release_is_rejected(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.release(reservation.id)

        with pytest.raises(InvalidTransition):
            record.commit(reservation.id)

    def test_commit_unknown_reservation_is_rejected(self):
        record = _record(5)
        with pytest.raises(ValidationError):
            record.commit("no-such-reservation")


class TestRestore:
    def test_restore_puts_committed_quantity_back(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)

        assert record.restore(reservation.id) is True
        assert record.available_quantity == 5
        assert record.find_reservation(reservation.id) is None
        assert isinstance(record._events[-1], ReservationRestored)

    def test_restore_is_idempotent(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)
        record.restore(reservation.id)

        assert record.restore(reservation.id) is False
        assert record.release(reservation.id) is False
        with pytest.raises(InvalidTransition):
            record.commit(reservation.id)
        assert record.available_quantity == 5

    def test_restore_ignores_active_reservations(self):
        record = _record(5)
        reservation = record.reserve(2)
        assert record.restore(reservation.id) is False
        assert record.available_quantity == 3


class TestSettledReservations:
    def test_only_live_reservations_stay_on_the_record(self):
        record = _record(10)
        released = record.reserve(1)
        restored = record.reserve(2)
        committed = record.reserve(3)
        active = record.reserve(1)

        record.release(released.id)
        record.commit(restored.id)
        record.restore(restored.id)
        record.commit(committed.id)

        assert {str(r.id) for r in record.reservations} == {str(committed.id), str(active.id)}
        assert record.available_quantity == 6

    def test_close_drops_committed_reservation(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)

        assert record.close(reservation.id) is True
        assert record.find_reservation(reservation.id) is None
        assert record.available_quantity == 3
        assert isinstance(record._events[-1], ReservationClosed)

    def test_close_ignores_active_and_unknown_reservations(self):
        record = _record(5)
        reservation = record.reserve(2)

        assert record.close(reservation.id) is False
        assert record.close("no-such-reservation") is False
        assert record.find_reservation(reservation.id).status == ReservationStatus.ACTIVE.value

    def test_closed_reservation_cannot_be_restored(self):
        record = _record(5)
        reservation = record.reserve(2)
        record.commit(reservation.id)
        record.close(reservation.id)

        assert record.restore(reservation.id) is False
        assert record.available_quantity == 3


class TestAdjust:
    def test_restock(self):
        record = _record(5)
        record.adjust(4, reason="delivery")

        assert record.available_quantity == 9
        event = record._events[-1]
        assert isinstance(event, StockAdjusted)
        assert event.delta == 4
        assert event.reason == "delivery"

    def test_correction_cannot_go_negative(self):
        record = _record(3)
        with pytest.raises(InsufficientStock):
            record.adjust(-4)
        assert record.available_quantity == 3

    def test_adjust_rejects_non_integers(self):
        record = _record(3)
        with pytest.raises(InvalidQuantity):
            record.adjust(1.5)
