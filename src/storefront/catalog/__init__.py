"""Catalog factory. Defaults to an empty InMemoryCatalog."""

from storefront.catalog.memory_adapter import InMemoryCatalog
from storefront.catalog.port import Catalog

_current_catalog: Catalog | None = None


def get_catalog() -> Catalog:
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog: Catalog) -> None:
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    global _current_catalog
    _current_catalog = None
