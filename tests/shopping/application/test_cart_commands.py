"""Application tests for the cart command handlers, persisted through the repository."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from shopping.cart.cart import CartStatus, ShoppingCart
from shopping.cart.checkout_details import UpdatePaymentMethod, UpdateShippingAddress
from shopping.cart.conversion import ConvertCartToOrder
from shopping.cart.exceptions import CartNotFoundError, ProductNotFoundError, StockError
from shopping.cart.items import (
    AddItemToCart,
    DecreaseProductQuantity,
    IncreaseProductQuantity,
    RemoveCartItem,
    RemoveProductFromCart,
    UpdateCartItemQuantity,
)
from shopping.cart.management import ClearCart, GetOrCreateCart, RestoreCart
from shopping.catalog.product import CatalogProduct

CUSTOMER = "cust-app-001"


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _stored(customer_id=CUSTOMER):
    return current_domain.repository_for(ShoppingCart).live_cart_for(customer_id)


def _add(product_id="prod-001", quantity=1, **kwargs):
    return _process(AddItemToCart(customer_id=CUSTOMER, product_id=product_id, quantity=quantity, **kwargs))


def _make_ready_for_checkout():
    _process(
        UpdateShippingAddress(
            customer_id=CUSTOMER,
            name="Ada",
            phone_number="555",
            address="1 Loop Rd",
            city="Paris",
            country="FR",
        )
    )
    _process(UpdatePaymentMethod(customer_id=CUSTOMER, method="card", details=json.dumps({"card_last_four": "4242"})))


class TestGetOrCreate:
    def test_creates_cart_once(self):
        first = _process(GetOrCreateCart(customer_id=CUSTOMER))
        second = _process(GetOrCreateCart(customer_id=CUSTOMER))

        assert first.id == second.id
        assert _stored().status == CartStatus.ACTIVE.value

    def test_carts_are_per_customer(self):
        mine = _process(GetOrCreateCart(customer_id=CUSTOMER))
        theirs = _process(GetOrCreateCart(customer_id="cust-other"))
        assert mine.id != theirs.id

    def test_expired_live_cart_is_retired(self):
        cart = _process(GetOrCreateCart(customer_id=CUSTOMER))
        stale = current_domain.repository_for(ShoppingCart).get(cart.id)
        stale.expires_at = datetime.now(UTC) - timedelta(days=1)
        current_domain.repository_for(ShoppingCart).add(stale)

        fresh = _process(GetOrCreateCart(customer_id=CUSTOMER))

        assert fresh.id != cart.id
        retired = current_domain.repository_for(ShoppingCart).get(cart.id)
        assert retired.status == CartStatus.EXPIRED.value
        assert retired.owner_key == f"{CUSTOMER}:{cart.id}"


class TestItemCommands:
    def test_add_item_opens_cart_and_persists_line(self, list_product):
        list_product("prod-001", price=12.5)
        _add(quantity=2)

        cart = _stored()
        assert len(cart.items) == 1
        assert cart.items[0].unit_price == 12.5
        assert cart.summary.subtotal == 25.0

    def test_add_with_attributes(self, list_product):
        list_product("prod-001")
        _add(selected_attributes=json.dumps([{"name": "size", "value": "M"}]))
        _add(selected_attributes=json.dumps([{"name": "size", "value": "L"}]))
        assert len(_stored().items) == 2

    def test_add_unknown_product(self):
        with pytest.raises(ProductNotFoundError):
            _add("prod-404")

    def test_update_quantity(self, list_product):
        list_product("prod-001", stock=5)
        cart = _add()

        _process(UpdateCartItemQuantity(customer_id=CUSTOMER, item_id=cart.items[0].id, quantity=4))
        assert _stored().items[0].quantity == 4

    def test_update_to_zero_removes(self, list_product):
        list_product("prod-001")
        cart = _add()

        _process(UpdateCartItemQuantity(customer_id=CUSTOMER, item_id=cart.items[0].id, quantity=0))
        assert _stored().is_empty()

    def test_remove_item(self, list_product):
        list_product("prod-001")
        cart = _add()

        _process(RemoveCartItem(customer_id=CUSTOMER, item_id=cart.items[0].id))
        assert _stored().is_empty()

    def test_product_keyed_commands(self, list_product):
        list_product("prod-001")
        list_product("prod-002")
        _add("prod-001")
        _add("prod-002")

        _process(IncreaseProductQuantity(customer_id=CUSTOMER, product_id="prod-001", by=2))
        assert _stored().items[0].quantity == 3

        _process(DecreaseProductQuantity(customer_id=CUSTOMER, product_id="prod-001"))
        assert _stored().items[0].quantity == 2

        _process(RemoveProductFromCart(customer_id=CUSTOMER, product_id="prod-001"))
        assert [i.product_id for i in _stored().items] == ["prod-002"]

    def test_mutating_without_a_cart(self):
        with pytest.raises(CartNotFoundError):
            _process(ClearCart(customer_id="cust-nobody"))

    def test_clear(self, list_product):
        list_product("prod-001")
        _add(quantity=3)

        _process(ClearCart(customer_id=CUSTOMER))
        assert _stored().is_empty()
        assert _stored().summary.total == 0.0


def _abandon(list_product):
    list_product("prod-001")
    cart = _add()
    stored = current_domain.repository_for(ShoppingCart).get(cart.id)
    stored.last_activity = datetime.now(UTC) - timedelta(hours=30)
    stored.mark_abandoned()
    current_domain.repository_for(ShoppingCart).add(stored)
    return cart.id


class TestAbandonedCartActivity:
    def test_user_mutation_restores_abandoned_cart(self, list_product):
        _abandon(list_product)
        _add(quantity=1)

        cart = _stored()
        assert cart.status == CartStatus.ACTIVE.value
        assert cart.items[0].quantity == 2

    def test_restore_command(self, list_product):
        cart_id = _abandon(list_product)
        _process(RestoreCart(customer_id=CUSTOMER, cart_id=cart_id))
        assert _stored().status == CartStatus.ACTIVE.value

    def test_restore_someone_elses_cart(self, list_product):
        cart_id = _abandon(list_product)
        with pytest.raises(CartNotFoundError):
            _process(RestoreCart(customer_id="cust-intruder", cart_id=cart_id))

    def test_restore_active_cart_is_not_found(self, list_product):
        list_product("prod-001")
        cart = _add()
        with pytest.raises(CartNotFoundError):
            _process(RestoreCart(customer_id=CUSTOMER, cart_id=cart.id))


class TestCheckout:
    def test_checkout_returns_order_snapshot(self, list_product):
        list_product("prod-001", price=20.0)
        _add(quantity=2)
        _make_ready_for_checkout()

        snapshot = _process(ConvertCartToOrder(customer_id=CUSTOMER))

        assert snapshot["order_reference"].startswith("ORD-")
        assert snapshot["summary"]["subtotal"] == 40.0
        assert snapshot["items"][0]["quantity"] == 2

    def test_converted_cart_is_kept_and_slot_is_freed(self, list_product):
        list_product("prod-001")
        cart = _add()
        _make_ready_for_checkout()
        _process(ConvertCartToOrder(customer_id=CUSTOMER))

        converted = current_domain.repository_for(ShoppingCart).get(cart.id)
        assert converted.status == CartStatus.CONVERTED.value
        assert converted.items == []

        fresh = _process(GetOrCreateCart(customer_id=CUSTOMER))
        assert fresh.id != cart.id
        assert fresh.is_empty()

    def test_checkout_uses_current_catalogue(self, list_product):
        product = list_product("prod-001", stock=5)
        _add(quantity=3)
        _make_ready_for_checkout()

        product.stock = 1
        current_domain.repository_for(CatalogProduct).add(product)

        with pytest.raises(StockError):
            _process(ConvertCartToOrder(customer_id=CUSTOMER))
        assert _stored().status == CartStatus.ACTIVE.value
