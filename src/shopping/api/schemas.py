"""Pydantic request/response schemas for the Shopping API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class Envelope(BaseModel):
    """Every response, success or failure, has this shape."""

    success: bool = True
    message: str | None = None
    data: Any = None
    errors: list[dict] | None = None


# ---------------------------------------------------------------------------
# Item Request Schemas
# ---------------------------------------------------------------------------
class AttributeSchema(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    value: str = Field(max_length=100)


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    selected_attributes: list[AttributeSchema] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "selected_attributes": [{"name": "size", "value": "M"}],
                }
            ]
        }
    }


class UpdateItemQuantityRequest(BaseModel):
    """Quantities below 1 remove the line."""

    quantity: int


class QuantityStepRequest(BaseModel):
    by: int = Field(ge=1, default=1)


# ---------------------------------------------------------------------------
# Coupon Request Schemas
# ---------------------------------------------------------------------------
class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Checkout Detail Request Schemas
# ---------------------------------------------------------------------------
class ShippingAddressRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(min_length=1, max_length=30)
    address: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)


class BillingAddressRequest(BaseModel):
    same_as_shipping: bool | None = None
    name: str | None = Field(default=None, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)


class EstimatedDeliverySchema(BaseModel):
    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None


class ShippingMethodRequest(BaseModel):
    method: str
    provider: str | None = Field(default=None, max_length=100)
    estimated_delivery: EstimatedDeliverySchema | None = None


class PaymentDetailsSchema(BaseModel):
    card_last_four: str | None = Field(default=None, pattern=r"^\d{4}$")
    card_brand: str | None = Field(default=None, max_length=30)
    bank_name: str | None = Field(default=None, max_length=100)
    account_last_four: str | None = Field(default=None, pattern=r"^\d{4}$")
    wallet_address: str | None = Field(default=None, max_length=255)


class PaymentMethodRequest(BaseModel):
    method: str
    details: PaymentDetailsSchema | None = None


# ---------------------------------------------------------------------------
# Admin Request Schemas
# ---------------------------------------------------------------------------
class DetectAbandonedRequest(BaseModel):
    idle_threshold_hours: int = Field(ge=1, default=24)
    as_of: datetime | None = None


