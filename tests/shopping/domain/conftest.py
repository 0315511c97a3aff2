import pytest
from shopping.cart.cart import ShoppingCart
from shopping.catalog.product import CatalogProduct


@pytest.fixture()
def make_product():
    """Factory for in-memory catalogue records. Domain tests never persist them."""

    def _make(product_id="prod-001", **overrides):
        values = {
            "product_id": product_id,
            "seller_id": "seller-001",
            "name": f"Product {product_id}",
            "price": 10.0,
            "stock": 10,
            "status": "active",
        }
        values.update(overrides)
        return CatalogProduct(**values)

    return _make


@pytest.fixture()
def cart():
    return ShoppingCart.create(customer_id="cust-001")


@pytest.fixture()
def product(make_product):
    return make_product()
