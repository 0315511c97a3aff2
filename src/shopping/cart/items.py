"""Cart item management — commands and handler.

Line-keyed operations (add, update, remove by item id) plus the product-keyed
operations used by clients that only track product ids.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from shopping.cart.cart import ShoppingCart
from shopping.cart.exceptions import ProductNotFoundError
from shopping.cart.helpers import cart_for_update, reactivate
from shopping.cart.management import get_or_create_cart
from shopping.catalog.gateway import get_product
from shopping.domain import shopping


@shopping.command(part_of="ShoppingCart")
class AddItemToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    selected_attributes = Text()  # JSON: list of {name, value}
    notes = String(max_length=500)


@shopping.command(part_of="ShoppingCart")
class UpdateCartItemQuantity:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@shopping.command(part_of="ShoppingCart")
class RemoveCartItem:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@shopping.command(part_of="ShoppingCart")
class IncreaseProductQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    by = Integer(default=1)


@shopping.command(part_of="ShoppingCart")
class DecreaseProductQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    by = Integer(default=1)


@shopping.command(part_of="ShoppingCart")
class RemoveProductFromCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)


def _existing_product(product_id):
    product = get_product(product_id)
    if product is None:
        raise ProductNotFoundError(
            {"product_id": ["Product not found"]},
            context={"product_id": str(product_id)},
        )
    return product


@shopping.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddItemToCart)
    def add_item(self, command):
        product = _existing_product(command.product_id)

        # Adding is the one mutation that opens a cart when the customer has none
        cart = reactivate(get_or_create_cart(command.customer_id))

        cart.add_item(
            product,
            quantity=command.quantity,
            selected_attributes=json.loads(command.selected_attributes) if command.selected_attributes else None,
            notes=command.notes,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(UpdateCartItemQuantity)
    def update_item_quantity(self, command):
        cart = cart_for_update(command.customer_id)

        line = next((i for i in cart.items if str(i.id) == str(command.item_id)), None)
        product = get_product(line.product_id) if line is not None and command.quantity >= 1 else None

        cart.update_item_quantity(command.item_id, command.quantity, product)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RemoveCartItem)
    def remove_item(self, command):
        cart = cart_for_update(command.customer_id)
        cart.remove_item(command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(IncreaseProductQuantity)
    def increase_quantity(self, command):
        cart = cart_for_update(command.customer_id)
        cart.increase_quantity(command.product_id, command.by, get_product(command.product_id))
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(DecreaseProductQuantity)
    def decrease_quantity(self, command):
        cart = cart_for_update(command.customer_id)
        cart.decrease_quantity(command.product_id, command.by)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RemoveProductFromCart)
    def remove_product(self, command):
        cart = cart_for_update(command.customer_id)
        cart.remove_product(command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
