"""Checkout details — addresses, shipping method and payment method."""

import json

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from shopping.cart.cart import ADDRESS_FIELDS, ShoppingCart
from shopping.cart.helpers import cart_for_update
from shopping.domain import shopping


@shopping.command(part_of="ShoppingCart")
class UpdateShippingAddress:
    """Merge-patch the shipping address. Unset fields are left as they are."""

    customer_id = Identifier(required=True)
    name = String(max_length=100)
    phone_number = String(max_length=30)
    address = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100)
    postal_code = String(max_length=20)


@shopping.command(part_of="ShoppingCart")
class UpdateBillingAddress:
    customer_id = Identifier(required=True)
    same_as_shipping = Boolean()
    name = String(max_length=100)
    phone_number = String(max_length=30)
    address = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100)
    postal_code = String(max_length=20)


@shopping.command(part_of="ShoppingCart")
class UpdateShippingMethod:
    customer_id = Identifier(required=True)
    method = String(required=True, max_length=20)
    provider = String(max_length=100)
    estimated_delivery_from = DateTime()
    estimated_delivery_to = DateTime()


@shopping.command(part_of="ShoppingCart")
class UpdatePaymentMethod:
    customer_id = Identifier(required=True)
    method = String(required=True, max_length=30)
    details = Text()  # JSON: card_last_four, card_brand, bank_name, account_last_four, wallet_address


def _address_patch(command) -> dict:
    return {field: getattr(command, field) for field in ADDRESS_FIELDS if getattr(command, field) is not None}


@shopping.command_handler(part_of=ShoppingCart)
class CheckoutDetailsHandler:
    @handle(UpdateShippingAddress)
    def update_shipping_address(self, command):
        cart = cart_for_update(command.customer_id)
        cart.update_shipping_address(**_address_patch(command))
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(UpdateBillingAddress)
    def update_billing_address(self, command):
        cart = cart_for_update(command.customer_id)
        cart.update_billing_address(same_as_shipping=command.same_as_shipping, **_address_patch(command))
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(UpdateShippingMethod)
    def update_shipping_method(self, command):
        cart = cart_for_update(command.customer_id)
        cart.update_shipping_method(
            command.method,
            provider=command.provider,
            estimated_delivery_from=command.estimated_delivery_from,
            estimated_delivery_to=command.estimated_delivery_to,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(UpdatePaymentMethod)
    def update_payment_method(self, command):
        cart = cart_for_update(command.customer_id)
        cart.update_payment_method(command.method, json.loads(command.details) if command.details else None)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
