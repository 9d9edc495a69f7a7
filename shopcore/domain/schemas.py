# shopcore/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Literal
from datetime import datetime


class CreateCartIn(BaseModel):
    """Schema for creating a cart."""

    customer_email: str = Field(..., min_length=3, description="Customer email (must contain @)")


class CartItemIn(BaseModel):
    sku: str = Field(..., min_length=1)
    qty: int = Field(..., gt=0, description="Quantity (must be > 0)")


class ReplaceItemsIn(BaseModel):
    """Full replacement of the cart's item set."""

    items: List[CartItemIn] = Field(..., min_length=1)


class ApplyDiscountIn(BaseModel):
    code: str = Field(..., min_length=1)


class CheckoutIn(BaseModel):
    success_url: str = Field(..., min_length=1)
    cancel_url: str = Field(..., min_length=1)
    collect_shipping: bool = False
    shipping_countries: List[str] = Field(default_factory=lambda: ["US"])
    #processor shipping_rate_data entries; a free standard rate when omitted
    shipping_options: List[Dict[str, Any]] | None = None


class TotalsOut(BaseModel):
    subtotal_cents: int
    discount_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int


class CartDiscountOut(BaseModel):
    code: str
    type: str
    amount_cents: int


class CartLineOut(BaseModel):
    sku: str
    title: str
    qty: int
    unit_price_cents: int


class CartOut(BaseModel):
    """Schema for a cart (response)."""

    id: str
    status: str
    currency: str
    customer_email: str
    items: List[CartLineOut]
    discount: CartDiscountOut | None = None
    totals: TotalsOut
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DiscountTotalsOut(BaseModel):
    discount: CartDiscountOut | None = None
    totals: TotalsOut


class CheckoutOut(BaseModel):
    checkout_url: str | None = None
    stripe_checkout_session_id: str


class InventoryOut(BaseModel):
    store_id: str
    sku: str
    on_hand: int
    reserved: int
    available: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryAdjustIn(BaseModel):
    delta: int
    reason: str | None = Field(None, max_length=200)


class DiscountCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    type: Literal["percentage", "fixed_amount"]
    value: int = Field(..., ge=0)
    status: Literal["active", "inactive"] = "active"
    min_purchase_cents: int = Field(0, ge=0)
    max_discount_cents: int | None = Field(None, ge=0)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(None, ge=0)
    usage_limit_per_customer: int | None = Field(None, ge=0)


class DiscountRead(BaseModel):
    id: str
    code: str
    type: str
    value: int
    status: str
    min_purchase_cents: int
    max_discount_cents: int | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    usage_limit_per_customer: int | None = None
    usage_count: int

    model_config = ConfigDict(from_attributes=True)


class OrderAmountsOut(BaseModel):
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int
    currency: str


class OrderDiscountOut(BaseModel):
    code: str
    amount_cents: int


class OrderStripeOut(BaseModel):
    checkout_session_id: str | None = None
    payment_intent_id: str | None = None


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: str
    number: str
    status: str
    customer_email: str
    ship_to: Dict[str, Any] | None = None
    tracking_number: str | None = None
    amounts: OrderAmountsOut
    discount: OrderDiscountOut | None = None
    stripe: OrderStripeOut
    items: List[CartLineOut]
    created_at: datetime


class OrderListOut(BaseModel):
    items: List[OrderOut]


class OrderUpdateIn(BaseModel):
    status: str | None = None
    tracking_number: str | None = None


class RefundIn(BaseModel):
    amount_cents: int | None = Field(None, gt=0)


class RefundOut(BaseModel):
    stripe_refund_id: str
    status: str | None = None


class ManualOrderIn(BaseModel):
    customer_email: str = Field(..., min_length=3)
    items: List[CartItemIn] = Field(..., min_length=1)
    discount_code: str | None = None


class WebhookAck(BaseModel):
    ok: bool
