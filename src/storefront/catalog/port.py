"""Catalog port: read-only price and tracking lookups for sellable units."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogEntry:
    unit_id: str
    price: float
    tracked: bool = True  # False for units without inventory, e.g. services
    name: str = ""


class Catalog(ABC):
    @abstractmethod
    def lookup(self, unit_id: str) -> CatalogEntry | None:
        """Return the unit's current entry, or None when it is not for sale."""
        ...
