"""Tests for the ShoppingCart aggregate: lines, merging and conversion."""

import pytest
from protean.exceptions import ValidationError

from storefront.cart.cart import CartOwner, CartStatus, ShoppingCart
from storefront.cart.events import (
    CartCleared,
    CartConverted,
    CartLineAdded,
    CartLineRemoved,
    CartLineUpdated,
    CartsMerged,
)
from storefront.errors import InvalidQuantity


def _quantities(cart):
    return {str(line.unit_id): line.quantity for line in cart.lines}


class TestCartOwner:
    def test_user_key(self):
        owner = CartOwner.user("u-1")
        assert owner.key == "user:u-1"
        assert owner.user_id == "u-1"

    def test_session_key(self):
        owner = CartOwner.session("tok-9")
        assert owner.key == "session:tok-9"
        assert owner.user_id is None

    def test_user_and_session_with_same_id_differ(self):
        assert CartOwner.user("x").key != CartOwner.session("x").key


class TestCartLines:
    def test_new_cart_is_active_and_empty(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        assert cart.status == CartStatus.ACTIVE.value
        assert cart.owner_key == "user:u-1"
        assert not cart.lines

    def test_add_line(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)

        assert _quantities(cart) == {"sku-a": 2}
        event = cart._events[-1]
        assert isinstance(event, CartLineAdded)
        assert event.new_quantity == 2

    def test_adding_same_unit_sums_quantities(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)
        cart.add_line("sku-a", 3)

        assert _quantities(cart) == {"sku-a": 5}
        assert len(cart.lines) == 1

    @pytest.mark.parametrize("quantity", [0, -2, 2.5, None, False])
    def test_add_line_rejects_invalid_quantity(self, quantity):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        with pytest.raises(InvalidQuantity):
            cart.add_line("sku-a", quantity)
        assert not cart.lines

    def test_lines_keep_insertion_order(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        for unit_id in ("sku-c", "sku-a", "sku-b"):
            cart.add_line(unit_id, 1)

        assert [str(line.unit_id) for line in cart.ordered_lines()] == ["sku-c", "sku-a", "sku-b"]

    def test_update_line_sets_absolute_quantity(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)
        cart.update_line("sku-a", 7)

        assert _quantities(cart) == {"sku-a": 7}
        event = cart._events[-1]
        assert isinstance(event, CartLineUpdated)
        assert event.previous_quantity == 2

    def test_update_to_zero_removes_line(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)
        cart.update_line("sku-a", 0)

        assert not cart.lines
        assert isinstance(cart._events[-1], CartLineRemoved)

    def test_update_missing_line_adds_it(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.update_line("sku-b", 4)
        assert _quantities(cart) == {"sku-b": 4}

    def test_update_rejects_negative_quantity(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)
        with pytest.raises(InvalidQuantity):
            cart.update_line("sku-a", -1)
        assert _quantities(cart) == {"sku-a": 2}

    def test_remove_absent_line_is_a_noop(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 1)
        cart._events.clear()

        cart.remove_line("sku-z")

        assert _quantities(cart) == {"sku-a": 1}
        assert not cart._events


class TestCartClear:
    def test_clear_removes_every_line(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 2)
        cart.add_line("sku-b", 1)

        assert cart.clear() == 2
        assert not cart.lines
        assert cart.status == CartStatus.ACTIVE.value
        assert isinstance(cart._events[-1], CartCleared)
        assert cart._events[-1].lines_removed == 2

    def test_clear_empty_cart_raises_nothing(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart._events.clear()

        assert cart.clear() == 0
        assert not cart._events

    def test_converted_cart_cannot_be_cleared(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 1)
        cart.convert("order-1")

        with pytest.raises(ValidationError):
            cart.clear()


class TestCartMerge:
    def test_absorb_sums_overlapping_lines(self):
        user_cart = ShoppingCart.create(CartOwner.user("u-1"))
        user_cart.add_line("sku-a", 1)
        session_cart = ShoppingCart.create(CartOwner.session("tok-1"))
        session_cart.add_line("sku-a", 2)
        session_cart.add_line("sku-b", 1)

        merged = user_cart.absorb(session_cart)

        assert merged == 2
        assert _quantities(user_cart) == {"sku-a": 3, "sku-b": 1}
        assert session_cart.status == CartStatus.MERGED.value
        assert session_cart.merged_into == user_cart.id
        assert not session_cart.lines
        assert isinstance(user_cart._events[-1], CartsMerged)

    def test_merged_cart_cannot_be_modified(self):
        user_cart = ShoppingCart.create(CartOwner.user("u-1"))
        session_cart = ShoppingCart.create(CartOwner.session("tok-1"))
        session_cart.add_line("sku-a", 1)
        user_cart.absorb(session_cart)

        with pytest.raises(ValidationError):
            session_cart.add_line("sku-a", 1)


class TestCartConversion:
    def test_convert_empties_the_cart(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 1)
        cart.convert("order-1")

        assert cart.status == CartStatus.CONVERTED.value
        assert cart.order_id == "order-1"
        assert not cart.lines
        assert isinstance(cart._events[-1], CartConverted)

    def test_converted_cart_cannot_convert_again(self):
        cart = ShoppingCart.create(CartOwner.user("u-1"))
        cart.add_line("sku-a", 1)
        cart.convert("order-1")

        with pytest.raises(ValidationError):
            cart.convert("order-2")
