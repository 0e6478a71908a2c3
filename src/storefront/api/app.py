"""Storefront FastAPI application.

Serves carts, checkout, orders and payments synchronously over HTTP. Every
request runs inside the storefront domain context.

Usage:
    uvicorn storefront.api.app:create_app --factory --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api import register_exception_handlers, routers
from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context, configure_logging


async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context and bind request details to log lines."""
    add_context(method=request.method, path=request.url.path)
    try:
        with storefront.domain_context():
            return await call_next(request)
    finally:
        clear_context()


def create_app() -> FastAPI:
    configure_logging()
    storefront.init()

    app = FastAPI(
        title="Storefront API",
        description="Carts, inventory reservations, checkout, orders and payments",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(domain_context_middleware)

    for router in routers:
        app.include_router(router)
    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": storefront.name})

    return app
