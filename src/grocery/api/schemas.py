"""Pydantic request/response schemas for the grocery API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

# --- Catalogue ---


class AddProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Kiwi",
                    "product_type": "fruit",
                    "price": 38.0,
                    "discount_percent": 0,
                    "initial_stock": 25.0,
                    "low_stock_threshold": 2.0,
                }
            ]
        }
    }

    name: str = Field(..., max_length=100)
    product_type: str | None = Field(None, max_length=20)
    price: float = Field(..., ge=0)
    discount_percent: float = Field(0.0, ge=0, le=100)
    initial_stock: float = Field(0.0, ge=0)
    low_stock_threshold: float = Field(0.0, ge=0)


class UpdateProductRequest(BaseModel):
    name: str | None = Field(None, max_length=100)
    product_type: str | None = Field(None, max_length=20)
    price: float | None = Field(None, ge=0)
    discount_percent: float | None = Field(None, ge=0, le=100)
    low_stock_threshold: float | None = Field(None, ge=0)


class RestockRequest(BaseModel):
    quantity: float = Field(..., gt=0)


class ProductResponse(BaseModel):
    product_id: str
    name: str
    product_type: str
    price: float
    discount_percent: float
    effective_price: float
    stock_quantity: float
    low_stock_threshold: float


# --- Orders ---


class CartLineRequest(BaseModel):
    product_id: str
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    product_name: str | None = None


class CheckoutRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "lines": [{"product_id": "prod-kiwi", "quantity": 5.0, "unit_price": 38.0}],
                    "requested_delivery_at": "2026-05-01T14:00:00Z",
                    "coupon_code": "SAVE10",
                }
            ]
        }
    }

    customer_id: str
    lines: list[CartLineRequest] = Field(..., min_length=1)
    requested_delivery_at: datetime
    coupon_code: str | None = Field(None, max_length=50)


class ClaimRequest(BaseModel):
    carrier_id: str


class ClaimManyRequest(BaseModel):
    carrier_id: str
    order_ids: list[str] = Field(..., min_length=1)


class ClaimManyResponse(BaseModel):
    claimed: int


class DeliverRequest(BaseModel):
    carrier_id: str
    delivered_at: datetime


class CancelRequest(BaseModel):
    customer_id: str
    reason: str | None = Field(None, max_length=500)


class OrderLineResponse(BaseModel):
    line_number: int
    product_id: str
    product_name: str | None = None
    quantity: float
    unit_price: float
    line_total: float


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    carrier_id: str | None = None
    requested_delivery_at: datetime
    created_at: datetime
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    subtotal: float
    discount_total: float
    vat_total: float
    total: float
    coupon_code: str | None = None
    lines: list[OrderLineResponse] = []


class HistoryEntryResponse(BaseModel):
    status: str
    actor: str | None = None
    note: str | None = None
    occurred_at: datetime


# --- Ratings ---


class RateCarrierRequest(BaseModel):
    customer_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class CarrierRatingSummaryResponse(BaseModel):
    carrier_id: str
    average_rating: float
    rating_count: int


# --- Promotions ---


class CreateCouponRequest(BaseModel):
    code: str = Field(..., max_length=50)
    discount_percent: float | None = Field(None, gt=0, le=100)
    discount_amount: float | None = Field(None, gt=0)
    min_order_amount: float = Field(0.0, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    max_uses: int = Field(..., ge=1)


class CouponCodeResponse(BaseModel):
    code: str


# --- Loyalty, alerts, accounts ---


class LoyaltyResponse(BaseModel):
    customer_id: str
    points: int
    total_spent: float
    tier: str
    discount_percent: int


class AlertResponse(BaseModel):
    alert_id: str
    product_id: str
    title: str
    message: str
    is_read: bool
    created_at: datetime


class RegisterAccountRequest(BaseModel):
    username: str = Field(..., max_length=50)
    display_name: str | None = Field(None, max_length=100)
    role: str


class AccountResponse(BaseModel):
    account_id: str
    username: str
    display_name: str | None = None
    role: str
    dashboard: str


class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str = "ok"
