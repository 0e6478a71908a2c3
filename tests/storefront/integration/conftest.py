import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.api import register_exception_handlers, routers
from storefront.api.app import domain_context_middleware


@pytest.fixture()
def client(services):
    app = FastAPI()
    app.middleware("http")(domain_context_middleware)
    for router in routers:
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def stocked(services):
    services.ledger.adjust("sku-a", 5)
    services.ledger.adjust("sku-b", 5)
    return services
