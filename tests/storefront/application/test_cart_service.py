"""Application tests for CartService: persistence, guest carts and merge-on-login."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from protean import current_domain

from storefront.cart.cart import CartOwner, CartStatus, ShoppingCart
from storefront.cart.service import CartService
from storefront.domain import storefront
from storefront.errors import InvalidQuantity
from storefront.utils.db import fetch_all

USER = CartOwner.user("u-1")
GUEST = CartOwner.session("tok-1")


@pytest.fixture()
def carts():
    return CartService(lock_timeout=2.0)


def _lines(carts, owner):
    return [(line.unit_id, line.quantity) for line in carts.snapshot(owner)]


class TestCartOperations:
    def test_snapshot_of_missing_cart_is_empty(self, carts):
        assert carts.snapshot(USER) == []
        assert carts.active_cart(USER) is None

    def test_add_creates_cart_on_first_line(self, carts):
        carts.add_line(USER, "sku-a", 2)

        cart = carts.active_cart(USER)
        assert cart.status == CartStatus.ACTIVE.value
        assert _lines(carts, USER) == [("sku-a", 2)]

    def test_lines_in_insertion_order(self, carts):
        carts.add_line(USER, "sku-b", 1)
        carts.add_line(USER, "sku-a", 1)
        carts.add_line(USER, "sku-b", 2)

        assert _lines(carts, USER) == [("sku-b", 3), ("sku-a", 1)]

    def test_update_and_remove(self, carts):
        carts.add_line(USER, "sku-a", 2)
        carts.add_line(USER, "sku-b", 1)

        carts.update_line(USER, "sku-a", 5)
        carts.remove_line(USER, "sku-b")
        carts.remove_line(USER, "sku-z")

        assert _lines(carts, USER) == [("sku-a", 5)]

    def test_update_to_zero_on_missing_cart_creates_nothing(self, carts):
        carts.update_line(USER, "sku-a", 0)
        assert carts.active_cart(USER) is None

    def test_invalid_quantity_leaves_cart_untouched(self, carts):
        carts.add_line(USER, "sku-a", 2)
        with pytest.raises(InvalidQuantity):
            carts.add_line(USER, "sku-a", -3)
        assert _lines(carts, USER) == [("sku-a", 2)]

    def test_owners_are_isolated(self, carts):
        carts.add_line(USER, "sku-a", 1)
        carts.add_line(GUEST, "sku-b", 1)

        assert _lines(carts, USER) == [("sku-a", 1)]
        assert _lines(carts, GUEST) == [("sku-b", 1)]


    def test_clear_empties_cart_but_keeps_it_active(self, carts):
        carts.add_line(USER, "sku-a", 2)
        carts.add_line(USER, "sku-b", 1)

        assert carts.clear(USER) == 2
        assert carts.snapshot(USER) == []
        assert carts.active_cart(USER).status == CartStatus.ACTIVE.value

        carts.add_line(USER, "sku-c", 1)
        assert _lines(carts, USER) == [("sku-c", 1)]

    def test_clear_missing_cart(self, carts):
        assert carts.clear(GUEST) == 0
        assert carts.active_cart(GUEST) is None


class TestMergeOnLogin:
    def test_merge_sums_overlapping_units(self, carts):
        carts.add_line(USER, "sku-a", 1)
        carts.add_line(GUEST, "sku-a", 2)
        carts.add_line(GUEST, "sku-c", 1)

        merged = carts.merge(GUEST, USER)

        assert merged == 2
        assert _lines(carts, USER) == [("sku-a", 3), ("sku-c", 1)]
        assert carts.snapshot(GUEST) == []

    def test_merge_retires_session_cart(self, carts):
        carts.add_line(GUEST, "sku-a", 2)
        carts.merge(GUEST, USER)

        session_carts = fetch_all(ShoppingCart, owner_key=GUEST.key)
        assert len(session_carts) == 1
        assert session_carts[0].status == CartStatus.MERGED.value
        assert session_carts[0].merged_into == carts.active_cart(USER).id

    def test_merge_into_user_without_cart(self, carts):
        carts.add_line(GUEST, "sku-a", 2)
        assert carts.merge(GUEST, USER) == 1
        assert _lines(carts, USER) == [("sku-a", 2)]

    def test_merge_is_idempotent(self, carts):
        carts.add_line(USER, "sku-a", 1)
        carts.add_line(GUEST, "sku-a", 2)

        carts.merge(GUEST, USER)
        assert carts.merge(GUEST, USER) == 0
        assert _lines(carts, USER) == [("sku-a", 3)]

    def test_merge_without_session_cart(self, carts):
        carts.add_line(USER, "sku-a", 1)
        assert carts.merge(GUEST, USER) == 0
        assert _lines(carts, USER) == [("sku-a", 1)]

    def test_guest_can_start_a_fresh_cart_after_merge(self, carts):
        carts.add_line(GUEST, "sku-a", 1)
        carts.merge(GUEST, USER)
        carts.add_line(GUEST, "sku-b", 1)

        assert _lines(carts, GUEST) == [("sku-b", 1)]
        assert len(fetch_all(ShoppingCart, owner_key=GUEST.key)) == 2

    @pytest.mark.slow
    def test_concurrent_merges_apply_once(self, carts):
        carts.add_line(USER, "sku-a", 1)
        carts.add_line(GUEST, "sku-a", 2)
        barrier = threading.Barrier(4)

        def merge(_):
            with storefront.domain_context():
                barrier.wait(5)
                return carts.merge(GUEST, USER)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(merge, range(4)))

        assert sorted(results) == [0, 0, 0, 1]
        assert _lines(carts, USER) == [("sku-a", 3)]


class TestCartPersistence:
    def test_cart_round_trips_through_repository(self, carts):
        carts.add_line(USER, "sku-a", 2)
        cart_id = carts.active_cart(USER).id

        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.owner_key == USER.key
        assert [(str(line.unit_id), line.quantity) for line in cart.lines] == [("sku-a", 2)]
