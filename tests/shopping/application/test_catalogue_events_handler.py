"""Application tests for CatalogueProductEventHandler — Shopping reacts to Catalogue events.

Covers:
- on_product_listed creates the local catalog record, and refreshes it on relisting
- price, stock and status changes update it
- events for products never listed are ignored
- captured cart prices survive a price change
"""

from datetime import UTC, datetime

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError
from shared.events.catalogue import (
    ProductListed,
    ProductPriceChanged,
    ProductStatusChanged,
    ProductStockAdjusted,
)
from shopping.cart.cart import ShoppingCart
from shopping.cart.items import AddItemToCart
from shopping.catalog.catalogue_events import CatalogueProductEventHandler
from shopping.catalog.product import CatalogProduct


def _listed(product_id="prod-ev-001", **overrides):
    values = {
        "product_id": product_id,
        "seller_id": "seller-009",
        "name": "Desk Lamp",
        "price": 40.0,
        "stock": 7,
        "status": "active",
        "listed_at": datetime.now(UTC),
    }
    values.update(overrides)
    CatalogueProductEventHandler().on_product_listed(ProductListed(**values))


def _product(product_id="prod-ev-001"):
    return current_domain.repository_for(CatalogProduct).get(product_id)


class TestProductListed:
    def test_creates_catalog_record(self):
        _listed()

        product = _product()
        assert product.name == "Desk Lamp"
        assert product.seller_id == "seller-009"
        assert product.price == 40.0
        assert product.stock == 7
        assert product.status == "active"

    def test_relisting_refreshes_the_record(self):
        _listed()
        _listed(price=42.0, stock=3)

        product = _product()
        assert product.price == 42.0
        assert product.stock == 3


class TestProductChanges:
    def test_price_change(self):
        _listed()
        CatalogueProductEventHandler().on_price_changed(
            ProductPriceChanged(
                product_id="prod-ev-001",
                previous_price=40.0,
                new_price=35.5,
                changed_at=datetime.now(UTC),
            )
        )
        assert _product().price == 35.5

    def test_stock_adjustment(self):
        _listed()
        CatalogueProductEventHandler().on_stock_adjusted(
            ProductStockAdjusted(product_id="prod-ev-001", stock=0, adjusted_at=datetime.now(UTC))
        )
        assert _product().stock == 0

    def test_status_change(self):
        _listed()
        CatalogueProductEventHandler().on_status_changed(
            ProductStatusChanged(product_id="prod-ev-001", status="inactive", changed_at=datetime.now(UTC))
        )
        assert _product().status == "inactive"

    def test_unknown_product_is_ignored(self):
        CatalogueProductEventHandler().on_status_changed(
            ProductStatusChanged(product_id="prod-ghost", status="inactive", changed_at=datetime.now(UTC))
        )
        with pytest.raises(ObjectNotFoundError):
            _product("prod-ghost")


class TestCartsAfterPriceChange:
    def test_line_keeps_captured_price(self):
        _listed()
        cart = current_domain.process(
            AddItemToCart(customer_id="cust-ev", product_id="prod-ev-001", quantity=1),
            asynchronous=False,
        )

        CatalogueProductEventHandler().on_price_changed(
            ProductPriceChanged(product_id="prod-ev-001", new_price=50.0, changed_at=datetime.now(UTC))
        )

        stored = current_domain.repository_for(ShoppingCart).get(cart.id)
        assert stored.items[0].unit_price == 40.0
        report = stored.validate({"prod-ev-001": _product()})
        assert [issue["issue"] for issue in report["issues"]] == ["price_changed"]
