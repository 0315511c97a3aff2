"""Cross-domain event contracts published by the product catalogue.

The shopping domain consumes these to keep its read-only ``CatalogProduct``
records current. They are registered as external events via
``domain.register_external_event()`` with matching ``__type__`` strings so
Protean's stream deserialization works correctly.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Float, Identifier, Integer, String


class ProductListed(BaseEvent):
    """A product was put up for sale by a seller."""

    __version__ = 1

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock = Integer(default=0)
    status = String(required=True)
    listed_at = DateTime(required=True)


class ProductPriceChanged(BaseEvent):
    """The seller changed a product's price."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float()
    new_price = Float(required=True)
    changed_at = DateTime(required=True)


class ProductStockAdjusted(BaseEvent):
    """A product's sellable stock changed (restock, sale, correction)."""

    __version__ = 1

    product_id = Identifier(required=True)
    stock = Integer(required=True)
    adjusted_at = DateTime(required=True)


class ProductStatusChanged(BaseEvent):
    """A product moved between active, inactive, sold_out and pending_review."""

    __version__ = 1

    product_id = Identifier(required=True)
    status = String(required=True)
    changed_at = DateTime(required=True)
