"""Cart to order conversion — command and handler.

The cart only guarantees its own state before and after the hand-off. The
returned snapshot is what an order-creation service receives.
"""

from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from shopping.cart.cart import ShoppingCart
from shopping.cart.helpers import cart_for_update
from shopping.catalog.gateway import products_for
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="ShoppingCart")
class ConvertCartToOrder:
    customer_id = Identifier(required=True)


@shopping.command_handler(part_of=ShoppingCart)
class ConvertCartHandler:
    @handle(ConvertCartToOrder)
    def convert_to_order(self, command):
        cart = cart_for_update(command.customer_id)

        snapshot = cart.convert_to_order(products_for(cart.items))
        current_domain.repository_for(ShoppingCart).add(cart)

        snapshot["order_reference"] = f"ORD-{uuid4().hex[:12].upper()}"
        logger.info(
            "Cart converted to order",
            cart_id=snapshot["cart_id"],
            customer_id=snapshot["customer_id"],
            order_reference=snapshot["order_reference"],
            total=snapshot["summary"]["total"],
            item_count=len(snapshot["items"]),
        )
        return snapshot
