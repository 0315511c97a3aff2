"""Cart management — commands and handler.

Handles get-or-create, clearing and restoring a customer's cart.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from shopping.cart.cart import CartStatus, ShoppingCart
from shopping.cart.exceptions import CartNotFoundError
from shopping.cart.helpers import cart_for_update
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="ShoppingCart")
class GetOrCreateCart:
    """Return the customer's live cart, opening an empty one when there is none."""

    customer_id = Identifier(required=True)


@shopping.command(part_of="ShoppingCart")
class ClearCart:
    customer_id = Identifier(required=True)


@shopping.command(part_of="ShoppingCart")
class RestoreCart:
    """Bring the customer's abandoned cart back to active."""

    customer_id = Identifier(required=True)
    cart_id = Identifier(required=True)


def get_or_create_cart(customer_id) -> ShoppingCart:
    """Live cart for ``customer_id``, retiring it first if its time-to-live elapsed.

    The unique owner key makes the store reject a second live cart for the
    same customer, so two racing creations cannot both persist.
    """
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.live_cart_for(customer_id)

    if cart is not None and cart.is_expired():
        cart.expire()
        repo.add(cart)
        logger.info("Retired expired cart", cart_id=str(cart.id), customer_id=str(customer_id))
        cart = None

    if cart is None:
        cart = ShoppingCart.create(customer_id=customer_id)
        repo.add(cart)
        logger.info("Created cart", cart_id=str(cart.id), customer_id=str(customer_id))

    return cart


@shopping.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(GetOrCreateCart)
    def get_or_create(self, command):
        return get_or_create_cart(command.customer_id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for_update(command.customer_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart

    @handle(RestoreCart)
    def restore_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.live_cart_for(command.customer_id)
        if cart is None or str(cart.id) != str(command.cart_id) or cart.status != CartStatus.ABANDONED.value:
            raise CartNotFoundError(
                {"cart": ["Abandoned cart not found"]},
                context={"cart_id": str(command.cart_id)},
            )

        cart.restore()
        repo.add(cart)
        logger.info("Restored cart", cart_id=str(cart.id), customer_id=str(command.customer_id))
        return cart
