"""Cart abandonment detection — command and handler for flagging idle carts.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via the admin API or ``manage.py mark-abandoned``. Active carts are
scanned page by page; each candidate is re-loaded and its idleness re-checked
immediately before the transition, so a customer who resumed activity after
the scan is left alone.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from shopping.cart.cart import CartStatus, ShoppingCart, utc
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


@shopping.command(part_of="ShoppingCart")
class DetectAbandonedCarts:
    """Flag active carts idle beyond the specified threshold."""

    idle_threshold_hours = Integer(default=24, min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@shopping.command_handler(part_of=ShoppingCart)
class DetectAbandonedCartsHandler:
    @handle(DetectAbandonedCarts)
    def detect_abandoned_carts(self, command):
        as_of = utc(command.as_of) or datetime.now(UTC)
        threshold = timedelta(hours=command.idle_threshold_hours or 24)
        cutoff = as_of - threshold

        logger.info(
            "Checking for abandoned carts",
            cutoff=cutoff.isoformat(),
            threshold_hours=command.idle_threshold_hours,
        )

        repo = current_domain.repository_for(ShoppingCart)
        candidates = [
            str(cart.id)
            for cart in repo.iter_with_status(CartStatus.ACTIVE.value)
            if cart.items and cart.last_activity and utc(cart.last_activity) < cutoff
        ]

        if not candidates:
            logger.info("No abandoned carts found")
            return 0

        abandoned_count = 0
        for cart_id in candidates:
            try:
                cart = repo.get(cart_id)
            except ObjectNotFoundError:
                logger.warning("Cart vanished before abandonment", cart_id=cart_id)
                continue

            if not cart.mark_abandoned(as_of=as_of, idle_threshold=threshold):
                logger.info("Cart no longer idle, skipped", cart_id=cart_id, status=cart.status)
                continue

            repo.add(cart)
            abandoned_count += 1
            logger.info(
                "Marked cart as abandoned",
                cart_id=cart_id,
                customer_id=str(cart.customer_id),
                item_count=len(cart.items),
                last_activity=str(cart.last_activity),
            )

        logger.info("Cart abandonment detection complete", abandoned_count=abandoned_count)
        return abandoned_count
