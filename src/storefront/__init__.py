"""Storefront core: inventory ledger, carts, orders, payments and checkout."""
