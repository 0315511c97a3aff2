"""Inbound cross-domain event handler — Shopping reacts to Catalogue events.

Keeps the ``CatalogProduct`` records current. Carts are not touched: a
price change leaves captured line prices alone (``validate`` reports the
drift), and a deactivated or sold-out product is caught at checkout.

Cross-domain events are imported from shared.events.catalogue and registered
as external events via shopping.register_external_event().
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.catalogue import (
    ProductListed,
    ProductPriceChanged,
    ProductStatusChanged,
    ProductStockAdjusted,
)

from shopping.cart.cart import ShoppingCart
from shopping.catalog.product import CatalogProduct
from shopping.domain import shopping

logger = structlog.get_logger(__name__)

# Register external events so Protean can deserialize them
shopping.register_external_event(ProductListed, "Catalogue.ProductListed.v1")
shopping.register_external_event(ProductPriceChanged, "Catalogue.ProductPriceChanged.v1")
shopping.register_external_event(ProductStockAdjusted, "Catalogue.ProductStockAdjusted.v1")
shopping.register_external_event(ProductStatusChanged, "Catalogue.ProductStatusChanged.v1")


def _update(product_id, **changes):
    repo = current_domain.repository_for(CatalogProduct)
    try:
        product = repo.get(str(product_id))
    except ObjectNotFoundError:
        logger.warning("Catalogue event for unknown product ignored", product_id=str(product_id))
        return None

    for field, value in changes.items():
        setattr(product, field, value)
    repo.add(product)
    return product


@shopping.event_handler(part_of=ShoppingCart, stream_category="catalogue::product")
class CatalogueProductEventHandler:
    """Maintains CatalogProduct from Catalogue domain events."""

    @handle(ProductListed)
    def on_product_listed(self, event: ProductListed) -> None:
        repo = current_domain.repository_for(CatalogProduct)
        listing = {
            "seller_id": str(event.seller_id),
            "name": event.name,
            "price": event.price,
            "stock": event.stock or 0,
            "status": event.status,
            "updated_at": event.listed_at,
        }
        try:
            product = repo.get(str(event.product_id))
        except ObjectNotFoundError:
            product = CatalogProduct(product_id=str(event.product_id), **listing)
        else:
            # Redelivered or relisted: refresh the existing record
            for field, value in listing.items():
                setattr(product, field, value)
        repo.add(product)
        logger.info("Catalog product listed", product_id=str(event.product_id), status=event.status)

    @handle(ProductPriceChanged)
    def on_price_changed(self, event: ProductPriceChanged) -> None:
        if _update(event.product_id, price=event.new_price, updated_at=event.changed_at):
            logger.info(
                "Catalog price changed",
                product_id=str(event.product_id),
                previous_price=event.previous_price,
                new_price=event.new_price,
            )

    @handle(ProductStockAdjusted)
    def on_stock_adjusted(self, event: ProductStockAdjusted) -> None:
        _update(event.product_id, stock=event.stock, updated_at=event.adjusted_at)

    @handle(ProductStatusChanged)
    def on_status_changed(self, event: ProductStatusChanged) -> None:
        if _update(event.product_id, status=event.status, updated_at=event.changed_at):
            logger.info("Catalog product status changed", product_id=str(event.product_id), status=event.status)
