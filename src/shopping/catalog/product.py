"""CatalogProduct — the shopping context's read-only view of a catalogue product."""

from enum import Enum

from protean.fields import DateTime, Float, Identifier, Integer, String

from shopping.domain import shopping


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD_OUT = "sold_out"
    PENDING_REVIEW = "pending_review"


@shopping.projection
class CatalogProduct:
    product_id = Identifier(identifier=True, required=True)
    seller_id = Identifier()
    name = String(max_length=255)
    price = Float(default=0.0, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    status = String(choices=ProductStatus, default=ProductStatus.PENDING_REVIEW.value)
    updated_at = DateTime()
