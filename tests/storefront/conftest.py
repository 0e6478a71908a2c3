import pytest
from protean.integrations.pytest import DomainFixture

from storefront.catalog import reset_catalog, set_catalog
from storefront.catalog.memory_adapter import InMemoryCatalog
from storefront.catalog.port import CatalogEntry
from storefront.config import Settings, reset_settings, set_settings
from storefront.notifications import reset_notifier, set_notifier
from storefront.notifications.recording import RecordingNotifier
from storefront.payment.processor import reset_processor, set_processor
from storefront.payment.processor.fake_adapter import FakeProcessor
from storefront.services import build_services, reset_services, set_services

SHIPPING_ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address_line1": "12 Analytical Row",
    "city": "London",
    "postal_code": "N1 9GU",
    "country": "GB",
}


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture()
def settings():
    """No backoff between processor retries and short lock waits."""
    value = Settings(
        processor_backoff_seconds=0.0,
        processor_backoff_max_seconds=0.0,
        lock_timeout_seconds=2.0,
    )
    set_settings(value)
    yield value
    reset_settings()


@pytest.fixture()
def catalog():
    value = InMemoryCatalog(
        [
            CatalogEntry("sku-a", 10.0, name="Espresso cup"),
            CatalogEntry("sku-b", 25.5, name="Milk jug"),
            CatalogEntry("sku-c", 4.25, name="Descaler"),
            CatalogEntry("svc-gift-wrap", 3.0, tracked=False, name="Gift wrap"),
        ]
    )
    set_catalog(value)
    yield value
    reset_catalog()


@pytest.fixture()
def processor():
    value = FakeProcessor()
    set_processor(value)
    yield value
    reset_processor()


@pytest.fixture()
def notifier():
    value = RecordingNotifier()
    set_notifier(value)
    yield value
    reset_notifier()


@pytest.fixture()
def services(settings, catalog, processor, notifier):
    value = build_services(catalog=catalog, processor=processor, notifier=notifier, settings=settings)
    set_services(value)
    yield value
    reset_services()


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)
