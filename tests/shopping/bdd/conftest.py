"""Shared BDD fixtures and step definitions for the Shopping domain."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from shopping.cart.cart import ShoppingCart
from shopping.catalog.product import CatalogProduct


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def catalogue():
    """In-memory product records keyed by product id."""
    return {}


@pytest.fixture()
def attempt(error):
    """Run a cart operation, capturing a rule violation instead of raising it."""

    def _attempt(action, *args, **kwargs):
        try:
            return action(*args, **kwargs)
        except ValidationError as exc:
            error["exc"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="cart")
def empty_cart():
    return ShoppingCart.create(customer_id="cust-bdd")


@given(parsers.cfparse('a product "{product_id}" priced {price:g} with stock {stock:d}'))
def listed_product(catalogue, product_id, price, stock):
    catalogue[product_id] = CatalogProduct(
        product_id=product_id,
        seller_id="seller-bdd",
        name=f"Product {product_id}",
        price=price,
        stock=stock,
        status="active",
    )


@given(parsers.cfparse('the cart holds {quantity:d} of "{product_id}"'))
def cart_holds(cart, catalogue, quantity, product_id):
    cart.add_item(catalogue[product_id], quantity)
    cart._events.clear()


@given(parsers.cfparse("the cart was last active {hours:d} hours ago"))
def cart_idle(cart, hours):
    cart.last_activity = datetime.now(UTC) - timedelta(hours=hours)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart has {count:d} line item"))
@then(parsers.cfparse("the cart has {count:d} line items"))
def line_item_count(cart, count):
    assert len(cart.items) == count


@then(parsers.cfparse('the line for "{product_id}" has quantity {quantity:d}'))
def line_quantity(cart, product_id, quantity):
    lines = [item for item in cart.items if item.product_id == product_id]
    assert [item.quantity for item in lines] == [quantity]


@then(parsers.cfparse('the summary {field} is {amount:g}'))
def summary_field(cart, field, amount):
    assert getattr(cart.summary, field) == pytest.approx(amount)


@then(parsers.cfparse('the cart status is "{status}"'))
def cart_status(cart, status):
    assert cart.status == status


@then(parsers.cfparse('the operation fails with "{code}"'))
def operation_fails(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code
