"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the domain elements they
are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    first_name: str
    last_name: str
    company: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str
    phone: str | None = None


class CartLineSchema(BaseModel):
    unit_id: str
    quantity: int
    added_at: datetime | None = None


class OrderLineSchema(BaseModel):
    unit_id: str
    quantity: int
    unit_price: float
    line_total: float


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddLineRequest(BaseModel):
    unit_id: str
    quantity: int = 1


class UpdateLineRequest(BaseModel):
    quantity: int


class MergeCartRequest(BaseModel):
    session_token: str

    model_config = {"json_schema_extra": {"examples": [{"session_token": "sess-4f1c"}]}}


class CartResponse(BaseModel):
    owner: str
    lines: list[CartLineSchema]


class MergeResponse(BaseModel):
    lines_merged: int


class CartIssueSchema(BaseModel):
    unit_id: str
    requested: int
    available: int
    message: str


class CartValidationResponse(BaseModel):
    valid: bool
    issues: list[CartIssueSchema]


class ClearCartResponse(BaseModel):
    lines_removed: int


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class StockLevelResponse(BaseModel):
    unit_id: str
    available: int


class SetStockRequest(BaseModel):
    quantity: int = Field(ge=0)
    reason: str | None = None


class AdjustStockRequest(BaseModel):
    delta: int
    reason: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method_ref: str | None = None
    email: str | None = None
    tax: float = Field(ge=0, default=0.0)
    shipping: float = Field(ge=0, default=0.0)
    discount: float = Field(ge=0, default=0.0)


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    intent_id: str
    total: float
    currency: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    fulfillment_status: str
    payment_status: str
    lines: list[OrderLineSchema]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    currency: str
    email: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None


class OrderSummaryResponse(BaseModel):
    total_orders: int
    total_revenue: float
    pending_orders: int
    completed_orders: int
    average_order_value: float


class CancelOrderRequest(BaseModel):
    reason: str
    refunded: bool | None = None


class AdvanceFulfillmentRequest(BaseModel):
    status: str = Field(pattern="^(Processing|Shipped|Delivered)$")


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreateIntentRequest(BaseModel):
    order_id: str
    method_ref: str | None = None


class ConfirmIntentRequest(BaseModel):
    method_ref: str | None = None


class ProcessorWebhookRequest(BaseModel):
    processor_intent_id: str
    status: str
    failure_reason: str | None = None


class IntentResponse(BaseModel):
    intent_id: str
    order_id: str
    status: str
    amount: float
    currency: str
    attempt_number: int
    failure_reason: str | None = None
    order_payment_status: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"


class ConfigureProcessorRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"


class ProcessorConfigResponse(BaseModel):
    should_succeed: bool
    failure_reason: str


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class SweepResponse(BaseModel):
    released: list[str]
    committed: list[str]
    cancelled_orders: list[str]
