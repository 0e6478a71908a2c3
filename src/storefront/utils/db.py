"""Persistence helpers shared by the storefront services.

Every write goes through ``persist()``: the aggregates of one logical change
are added inside a single Protean ``UnitOfWork`` so they commit or roll back
together. Commits are serialized process-wide because the in-memory provider
replaces its whole dataset on commit; without the lock, two threads
committing at once would drop one another's writes.
"""

import threading

from protean.core.unit_of_work import UnitOfWork
from protean.utils.globals import current_domain
from protean.utils.reflection import id_field

QUERY_PAGE_SIZE = 500

_write_lock = threading.RLock()


def persist(*aggregates) -> None:
    """Add all ``aggregates`` to their repositories in one unit of work."""
    with _write_lock:
        with UnitOfWork():
            for aggregate in aggregates:
                current_domain.repository_for(type(aggregate)).add(aggregate)


def fetch_all(aggregate_cls, **filters) -> list:
    """Return every stored ``aggregate_cls`` matching the exact-value ``filters``.

    Results are read page by page in identity order until a short page comes
    back, so no match is ever cut off.
    """
    query = current_domain.repository_for(aggregate_cls)._dao.query
    if filters:
        query = query.filter(**filters)
    query = query.order_by(id_field(aggregate_cls).field_name)

    items = []
    offset = 0
    while True:
        page = query.offset(offset).limit(QUERY_PAGE_SIZE).all().items
        items.extend(page)
        if len(page) < QUERY_PAGE_SIZE:
            return items
        offset += QUERY_PAGE_SIZE
