"""FastAPI routes for the storefront: carts, inventory, checkout, orders, payments.

Handlers are plain functions: the services block on locks and the processor,
so FastAPI runs them in its threadpool instead of on the event loop.
"""

import json
import os

from fastapi import APIRouter, Depends, Header, HTTPException

from storefront.api.schemas import (
    AddLineRequest,
    AdjustStockRequest,
    AdvanceFulfillmentRequest,
    CancelOrderRequest,
    CartIssueSchema,
    CartLineSchema,
    CartResponse,
    CartValidationResponse,
    CheckoutRequest,
    CheckoutResponse,
    ClearCartResponse,
    ConfigureProcessorRequest,
    ConfirmIntentRequest,
    CreateIntentRequest,
    IntentResponse,
    MergeCartRequest,
    MergeResponse,
    OrderLineSchema,
    OrderResponse,
    OrderSummaryResponse,
    ProcessorConfigResponse,
    ProcessorWebhookRequest,
    SetStockRequest,
    StatusResponse,
    StockLevelResponse,
    SweepResponse,
    UpdateLineRequest,
)
from storefront.cart.cart import CartOwner
from storefront.order.state_machine import CancellationActor
from storefront.payment.processor import get_processor
from storefront.payment.processor.fake_adapter import FakeProcessor
from storefront.services import get_services


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
def current_owner(
    x_user_id: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
) -> CartOwner:
    """A signed-in user wins over a guest session token."""
    if x_user_id:
        return CartOwner.user(x_user_id)
    if x_session_token:
        return CartOwner.session(x_session_token)
    raise HTTPException(status_code=401, detail="Missing X-User-Id or X-Session-Token header")


def is_admin(x_role: str = Header(default="")) -> bool:
    return x_role.lower() == "admin"


def require_admin(admin: bool = Depends(is_admin)) -> None:
    if not admin:
        raise HTTPException(status_code=403, detail="Admin role required")


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _cart_response(owner: CartOwner) -> CartResponse:
    lines = get_services().carts.snapshot(owner)
    return CartResponse(
        owner=owner.key,
        lines=[CartLineSchema(unit_id=line.unit_id, quantity=line.quantity, added_at=line.added_at) for line in lines],
    )


def _order_response(order) -> OrderResponse:
    pricing = order.pricing
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        fulfillment_status=order.fulfillment_status,
        payment_status=order.payment_status,
        lines=[
            OrderLineSchema(
                unit_id=str(line.unit_id),
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.lines
        ],
        subtotal=pricing.subtotal,
        tax=pricing.tax,
        shipping=pricing.shipping,
        discount=pricing.discount,
        total=pricing.total,
        currency=pricing.currency,
        email=order.email,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
    )


def _intent_response(intent) -> IntentResponse:
    order = get_services().orders.get(intent.order_id)
    return IntentResponse(
        intent_id=str(intent.id),
        order_id=str(intent.order_id),
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        attempt_number=intent.attempt_number,
        failure_reason=intent.failure_reason,
        order_payment_status=order.payment_status,
    )


def _owned_order(order_id: str, owner: CartOwner, admin: bool):
    """Load an order the caller may act on. Other owners' orders look missing."""
    order = get_services().orders.get(order_id)
    if not admin and order.owner_key != owner.key:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/current", response_model=CartResponse)
def get_cart(owner: CartOwner = Depends(current_owner)) -> CartResponse:
    """Return the caller's active cart, oldest line first."""
    return _cart_response(owner)


@cart_router.delete("/current", response_model=ClearCartResponse)
def clear_cart(owner: CartOwner = Depends(current_owner)) -> ClearCartResponse:
    return ClearCartResponse(lines_removed=get_services().carts.clear(owner))


@cart_router.get("/current/validate", response_model=CartValidationResponse)
def validate_cart(owner: CartOwner = Depends(current_owner)) -> CartValidationResponse:
    """Report lines that checkout would reject right now. Nothing is reserved."""
    issues = get_services().checkout.validate_cart(owner)
    return CartValidationResponse(
        valid=not issues,
        issues=[
            CartIssueSchema(
                unit_id=issue.unit_id, requested=issue.requested, available=issue.available, message=issue.message
            )
            for issue in issues
        ],
    )


@cart_router.post("/current/lines", response_model=CartResponse)
def add_line(body: AddLineRequest, owner: CartOwner = Depends(current_owner)) -> CartResponse:
    get_services().carts.add_line(owner, body.unit_id, body.quantity)
    return _cart_response(owner)


@cart_router.put("/current/lines/{unit_id}", response_model=CartResponse)
def update_line(
    unit_id: str, body: UpdateLineRequest, owner: CartOwner = Depends(current_owner)
) -> CartResponse:
    """Set a line's quantity. Zero removes the line."""
    get_services().carts.update_line(owner, unit_id, body.quantity)
    return _cart_response(owner)


@cart_router.delete("/current/lines/{unit_id}", response_model=CartResponse)
def remove_line(unit_id: str, owner: CartOwner = Depends(current_owner)) -> CartResponse:
    get_services().carts.remove_line(owner, unit_id)
    return _cart_response(owner)


@cart_router.post("/merge", response_model=MergeResponse)
def merge_carts(body: MergeCartRequest, x_user_id: str = Header(default="")) -> MergeResponse:
    """Fold a guest session cart into the signed-in user's cart."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Merging requires a signed-in user")
    merged = get_services().carts.merge(CartOwner.session(body.session_token), CartOwner.user(x_user_id))
    return MergeResponse(lines_merged=merged)


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.get("/{unit_id}", response_model=StockLevelResponse)
def get_stock(unit_id: str) -> StockLevelResponse:
    return StockLevelResponse(unit_id=unit_id, available=get_services().ledger.available(unit_id))


@inventory_router.patch("/{unit_id}", response_model=StockLevelResponse, dependencies=[Depends(require_admin)])
def set_stock(unit_id: str, body: SetStockRequest) -> StockLevelResponse:
    """Set the available quantity after a stock count."""
    available = get_services().ledger.set_available(unit_id, body.quantity, reason=body.reason)
    return StockLevelResponse(unit_id=unit_id, available=available)


@inventory_router.post(
    "/{unit_id}/adjustments", response_model=StockLevelResponse, dependencies=[Depends(require_admin)]
)
def adjust_stock(unit_id: str, body: AdjustStockRequest) -> StockLevelResponse:
    """Restock (positive delta) or write off (negative delta) available stock."""
    available = get_services().ledger.adjust(unit_id, body.delta, reason=body.reason)
    return StockLevelResponse(unit_id=unit_id, available=available)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
def checkout(body: CheckoutRequest, owner: CartOwner = Depends(current_owner)) -> CheckoutResponse:
    """Turn the caller's cart into a pending order with an open payment intent."""
    result = get_services().checkout.checkout(
        owner,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method_ref=body.payment_method_ref,
        email=body.email,
        tax=body.tax,
        shipping=body.shipping,
        discount=body.discount,
    )
    return CheckoutResponse(
        order_id=str(result.order.id),
        order_number=result.order.order_number,
        intent_id=str(result.intent.id),
        total=result.order.pricing.total,
        currency=result.order.pricing.currency,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderResponse])
def list_orders(
    status: str | None = None,
    payment_status: str | None = None,
    owner: CartOwner = Depends(current_owner),
) -> list[OrderResponse]:
    try:
        orders = get_services().orders.list_for_owner(owner, status=status, payment_status=payment_status)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [_order_response(order) for order in orders]


@order_router.get("/summary", response_model=OrderSummaryResponse)
def order_summary(owner: CartOwner = Depends(current_owner)) -> OrderSummaryResponse:
    summary = get_services().orders.summary(owner)
    return OrderSummaryResponse(
        total_orders=summary.total_orders,
        total_revenue=summary.total_revenue,
        pending_orders=summary.pending_orders,
        completed_orders=summary.completed_orders,
        average_order_value=summary.average_order_value,
    )


@order_router.get("/by-number/{order_number}", response_model=OrderResponse)
def get_order_by_number(
    order_number: str,
    owner: CartOwner = Depends(current_owner),
    admin: bool = Depends(is_admin),
) -> OrderResponse:
    order = get_services().orders.find_by_number(order_number)
    if order is None or (not admin and order.owner_key != owner.key):
        raise HTTPException(status_code=404, detail=f"Order {order_number} not found")
    return _order_response(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    owner: CartOwner = Depends(current_owner),
    admin: bool = Depends(is_admin),
) -> OrderResponse:
    return _order_response(_owned_order(order_id, owner, admin))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    owner: CartOwner = Depends(current_owner),
    admin: bool = Depends(is_admin),
) -> OrderResponse:
    """Cancel a pending or confirmed order and release its stock."""
    _owned_order(order_id, owner, admin)
    actor = CancellationActor.ADMIN if admin else CancellationActor.CUSTOMER
    order = get_services().order_service.cancel(
        order_id, reason=body.reason, cancelled_by=actor.value, refunded=body.refunded
    )
    return _order_response(order)


@order_router.post(
    "/{order_id}/fulfillment", response_model=OrderResponse, dependencies=[Depends(require_admin)]
)
def advance_fulfillment(order_id: str, body: AdvanceFulfillmentRequest) -> OrderResponse:
    """Move a confirmed order along PROCESSING, SHIPPED and DELIVERED."""
    service = get_services().order_service
    actions = {
        "Processing": service.mark_processing,
        "Shipped": service.mark_shipped,
        "Delivered": service.mark_delivered,
    }
    order = actions[body.status](order_id)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/intents", status_code=201, response_model=IntentResponse)
def create_intent(
    body: CreateIntentRequest,
    owner: CartOwner = Depends(current_owner),
    admin: bool = Depends(is_admin),
) -> IntentResponse:
    """Open a new payment intent for an order whose previous attempt failed."""
    _owned_order(body.order_id, owner, admin)
    intent = get_services().payments.create_intent(body.order_id, method_ref=body.method_ref)
    return _intent_response(intent)


@payment_router.post("/intents/{intent_id}/confirm", response_model=IntentResponse)
def confirm_intent(
    intent_id: str,
    body: ConfirmIntentRequest,
    owner: CartOwner = Depends(current_owner),
    admin: bool = Depends(is_admin),
) -> IntentResponse:
    """Collect payment on an intent. Repeating the call on a settled intent is harmless."""
    services = get_services()
    _owned_order(services.payments.get_intent(intent_id).order_id, owner, admin)
    intent = services.payments.confirm(intent_id, method_ref=body.method_ref)
    return _intent_response(intent)


@payment_router.post("/webhook", response_model=StatusResponse)
def process_webhook(
    body: ProcessorWebhookRequest,
    x_processor_signature: str = Header(default=""),
) -> StatusResponse:
    """Apply a payment processor callback."""
    processor = get_processor()
    if not processor.verify_webhook_signature(json.dumps(body.model_dump()), x_processor_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    get_services().payments.apply_processor_status(
        body.processor_intent_id, body.status, failure_reason=body.failure_reason
    )
    return StatusResponse(status="processed")


@payment_router.post("/processor/configure", response_model=ProcessorConfigResponse)
def configure_processor(body: ConfigureProcessorRequest) -> ProcessorConfigResponse:
    """Configure the FakeProcessor behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Processor configuration not available in production")

    processor = get_processor()
    if not isinstance(processor, FakeProcessor):
        raise HTTPException(status_code=400, detail="Processor configuration only available for FakeProcessor")

    processor.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return ProcessorConfigResponse(
        should_succeed=processor.should_succeed,
        failure_reason=processor.failure_reason,
    )


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/sweep", response_model=SweepResponse, dependencies=[Depends(require_admin)])
def sweep() -> SweepResponse:
    """Release abandoned reservations and cancel orders whose payment never completed."""
    report = get_services().sweeper.sweep()
    return SweepResponse(
        released=report.released,
        committed=report.committed,
        cancelled_orders=report.cancelled_orders,
    )
