"""Shared lookups for the cart command handlers."""

import structlog
from protean.utils.globals import current_domain

from shopping.cart.cart import CartStatus, ShoppingCart
from shopping.cart.exceptions import CartNotFoundError

logger = structlog.get_logger(__name__)


def live_cart(customer_id) -> ShoppingCart:
    """The customer's active or abandoned cart. Raises when there is none."""
    cart = current_domain.repository_for(ShoppingCart).live_cart_for(customer_id)
    if cart is None:
        raise CartNotFoundError(
            {"cart": ["Cart not found"]},
            context={"customer_id": str(customer_id)},
        )
    return cart


def reactivate(cart: ShoppingCart) -> ShoppingCart:
    """Restore an abandoned cart before a user mutation touches it."""
    if cart.status == CartStatus.ABANDONED.value:
        cart.restore()
        logger.info("Restored abandoned cart on activity", cart_id=str(cart.id), customer_id=str(cart.customer_id))
    return cart


def cart_for_update(customer_id) -> ShoppingCart:
    return reactivate(live_cart(customer_id))
