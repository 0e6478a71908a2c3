"""Shared BDD fixtures and step definitions for the storefront."""

import pytest
from pytest_bdd import given, parsers, then, when

from storefront.cart.cart import CartOwner
from storefront.errors import InsufficientStock


@pytest.fixture()
def context():
    """What happened so far in the scenario, keyed by step outcome."""
    return {"placed": {}, "last_placed": None, "intent": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{unit_id}" has {count:d} units in stock'))
def unit_in_stock(services, unit_id, count):
    services.ledger.adjust(unit_id, count)


@given(parsers.cfparse('customer "{user_id}" has {quantity:d} of "{unit_id}" in their cart'))
def customer_cart_line(services, user_id, quantity, unit_id):
    services.carts.add_line(CartOwner.user(user_id), unit_id, quantity)


@given(parsers.cfparse('guest "{token}" has {quantity:d} of "{unit_id}" in their cart'))
def guest_cart_line(services, token, quantity, unit_id):
    services.carts.add_line(CartOwner.session(token), unit_id, quantity)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('customer "{user_id}" checks out'))
@when(parsers.cfparse('customer "{user_id}" checks out'))
def customer_checks_out(services, shipping_address, context, user_id):
    try:
        placed = services.checkout.checkout(
            CartOwner.user(user_id), shipping_address=shipping_address, email=f"{user_id}@example.com"
        )
    except InsufficientStock as exc:
        context["error"] = exc
    else:
        context["placed"][user_id] = placed
        context["last_placed"] = placed
        context["intent"] = placed.intent


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{unit_id}" has {count:d} units available'))
def units_available(services, unit_id, count):
    assert services.ledger.available(unit_id) == count


@then(parsers.cfparse('the cart of customer "{user_id}" holds {count:d} lines'))
def customer_cart_size(services, user_id, count):
    assert len(services.carts.snapshot(CartOwner.user(user_id))) == count


@then(parsers.cfparse('the cart of customer "{user_id}" has {quantity:d} of "{unit_id}"'))
def customer_cart_quantity(services, user_id, quantity, unit_id):
    lines = {line.unit_id: line.quantity for line in services.carts.snapshot(CartOwner.user(user_id))}
    assert lines[unit_id] == quantity
