"""Repository for the ShoppingCart aggregate."""

import math
from datetime import UTC, datetime, timedelta

from shopping.cart.cart import CartStatus, ShoppingCart, utc
from shopping.domain import shopping

PAGE_SIZE = 100


@shopping.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    """Cart lookups beyond get-by-id.

    Scans page through the store instead of loading every cart at once.
    """

    def live_cart_for(self, customer_id) -> ShoppingCart | None:
        """The customer's active or abandoned cart, if any."""
        return self._dao.query.filter(owner_key=str(customer_id)).all().first

    def iter_with_status(self, status: str, page_size: int = PAGE_SIZE):
        offset = 0
        while True:
            page = self._dao.query.filter(status=status).order_by("id").offset(offset).limit(page_size).all()
            yield from page.items
            if len(page.items) < page_size:
                return
            offset += page_size

    def expired_ids(self, as_of, page_size: int = PAGE_SIZE) -> list[str]:
        """Ids of non-converted carts whose time-to-live elapsed by ``as_of``."""
        statuses = (CartStatus.ACTIVE.value, CartStatus.ABANDONED.value, CartStatus.EXPIRED.value)
        return [
            str(cart.id)
            for status in statuses
            for cart in self.iter_with_status(status, page_size)
            if cart.is_expired(as_of)
        ]

    def find_abandoned(self, days: int = 1, as_of=None, page: int = 1, limit: int = 20) -> dict:
        """Abandoned carts idle for longer than ``days`` days, most recently active first."""
        as_of = utc(as_of) or datetime.now(UTC)
        cutoff = as_of - timedelta(days=days)

        result = (
            self._dao.query.filter(status=CartStatus.ABANDONED.value, last_activity__lt=cutoff)
            .order_by("-last_activity")
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        total = result.total
        total_pages = math.ceil(total / limit) if limit else 0
        return {
            "carts": result.items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
            },
            "cutoff": cutoff,
        }

    def delete(self, cart: ShoppingCart) -> None:
        self._dao.delete(cart)
