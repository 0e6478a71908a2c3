"""In-memory catalog for development and testing."""

from storefront.catalog.port import Catalog, CatalogEntry


class InMemoryCatalog(Catalog):
    def __init__(self, entries: list[CatalogEntry] | None = None) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries or []:
            self.put(entry)

    def put(self, entry: CatalogEntry) -> None:
        self._entries[str(entry.unit_id)] = entry

    def set_price(self, unit_id: str, price: float) -> None:
        entry = self._entries[str(unit_id)]
        self._entries[str(unit_id)] = CatalogEntry(entry.unit_id, price, entry.tracked, entry.name)

    def remove(self, unit_id: str) -> None:
        self._entries.pop(str(unit_id), None)

    def lookup(self, unit_id: str) -> CatalogEntry | None:
        return self._entries.get(str(unit_id))

    def clear(self) -> None:
        self._entries.clear()
