"""Expired cart cleanup — hard-deletes carts whose time-to-live elapsed.

Converted carts are order history and are never purged here.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime
from protean.utils.globals import current_domain

from shopping.cart.cart import CartStatus, ShoppingCart, utc
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="ShoppingCart")
class CleanupExpiredCarts:
    as_of = DateTime()  # Optional: defaults to now


@shopping.command_handler(part_of=ShoppingCart)
class CleanupExpiredCartsHandler:
    @handle(CleanupExpiredCarts)
    def cleanup_expired_carts(self, command):
        as_of = utc(command.as_of) or datetime.now(UTC)
        repo = current_domain.repository_for(ShoppingCart)

        expired_ids = repo.expired_ids(as_of)
        logger.info("Cleaning up expired carts", as_of=as_of.isoformat(), candidates=len(expired_ids))

        removed = 0
        for cart_id in expired_ids:
            try:
                cart = repo.get(cart_id)
            except ObjectNotFoundError:
                continue

            if cart.status == CartStatus.CONVERTED.value or not cart.is_expired(as_of):
                continue

            repo.delete(cart)
            removed += 1
            logger.info("Deleted expired cart", cart_id=cart_id, customer_id=str(cart.customer_id), status=cart.status)

        logger.info("Expired cart cleanup complete", removed=removed)
        return removed
