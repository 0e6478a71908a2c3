"""Translation of domain and infrastructure errors into HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from storefront.errors import (
    CheckoutAborted,
    DuplicateIntent,
    InsufficientStock,
    InvalidTransition,
    LockTimeout,
    PaymentProcessorError,
    ProcessorRejected,
)

logger = structlog.get_logger(__name__)


def _messages(exc: ValidationError) -> dict:
    return getattr(exc, "messages", None) or {"detail": [str(exc)]}


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    body = {"errors": _messages(exc)}
    if isinstance(exc, InsufficientStock):
        body["unit_ids"] = exc.unit_ids
        return JSONResponse(status_code=409, content=body)
    if isinstance(exc, (DuplicateIntent, InvalidTransition)):
        return JSONResponse(status_code=409, content=body)
    return JSONResponse(status_code=422, content=body)


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


async def processor_error_handler(request: Request, exc: PaymentProcessorError) -> JSONResponse:
    status_code = 402 if isinstance(exc, ProcessorRejected) else 503
    logger.warning(
        "Payment processor error returned to client",
        path=request.url.path,
        status_code=status_code,
        order_id=exc.order_id,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "order_id": exc.order_id, "order_number": exc.order_number},
    )


async def lock_timeout_handler(request: Request, exc: LockTimeout) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)}, headers={"Retry-After": "1"})


async def checkout_aborted_handler(request: Request, exc: CheckoutAborted) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(PaymentProcessorError, processor_error_handler)
    app.add_exception_handler(LockTimeout, lock_timeout_handler)
    app.add_exception_handler(CheckoutAborted, checkout_aborted_handler)
