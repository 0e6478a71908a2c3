"""BDD tests for merging a guest cart on login."""

from pytest_bdd import parsers, scenarios, then, when

from storefront.cart.cart import CartOwner

scenarios("features/cart_merge.feature")


@when(parsers.cfparse('guest "{token}" signs in as customer "{user_id}"'))
def guest_signs_in(services, context, token, user_id):
    context["merged"] = services.carts.merge(CartOwner.session(token), CartOwner.user(user_id))


@then(parsers.cfparse("{count:d} lines were merged"))
def lines_merged(context, count):
    assert context["merged"] == count


@then(parsers.cfparse('the cart of guest "{token}" is empty'))
def guest_cart_empty(services, token):
    assert services.carts.snapshot(CartOwner.session(token)) == []
