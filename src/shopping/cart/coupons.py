"""Cart coupon management — coupon book, commands and handler.

Coupons come from a hard-coded coupon book; there is no coupon store.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from shopping.cart.cart import ShoppingCart
from shopping.cart.exceptions import CouponError
from shopping.cart.helpers import cart_for_update
from shopping.cart.pricing import DiscountType
from shopping.domain import shopping

logger = structlog.get_logger(__name__)

# code -> coupon rule. ``valid_for`` is turned into ``expires_at`` on lookup.
COUPON_BOOK = {
    "SAVE10": {
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": 10.0,
        "max_discount": 50.0,
        "min_purchase": 100.0,
        "valid_for": timedelta(days=30),
    },
    "HALFOFF": {
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": 50.0,
        "max_discount": 20.0,
    },
    "FLAT15": {
        "discount_type": DiscountType.FIXED.value,
        "discount_value": 15.0,
    },
    "FREESHIP": {
        "discount_type": DiscountType.FREE_SHIPPING.value,
        "discount_value": 0.0,
    },
    "LAUNCH2020": {
        "discount_type": DiscountType.PERCENTAGE.value,
        "discount_value": 20.0,
        "expires_at": datetime(2020, 12, 31, tzinfo=UTC),
    },
}


def lookup_coupon(code: str, now=None) -> dict:
    """Coupon data for ``code`` (case-insensitive). Raises ``CouponError`` for unknown codes."""
    rule = COUPON_BOOK.get(code.strip().upper())
    if rule is None:
        raise CouponError(
            {"coupon_code": [f"Coupon {code} is not valid"]},
            code="invalid_coupon",
            context={"coupon_code": code},
        )

    coupon = {key: value for key, value in rule.items() if key != "valid_for"}
    if "valid_for" in rule:
        coupon["expires_at"] = (now or datetime.now(UTC)) + rule["valid_for"]
    return coupon


@shopping.command(part_of="ShoppingCart")
class ApplyCouponToCart:
    """Apply a coupon code, replacing any coupon already on the cart."""

    customer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=100)


@shopping.command(part_of="ShoppingCart")
class RemoveCouponFromCart:
    customer_id = Identifier(required=True)


@shopping.command_handler(part_of=ShoppingCart)
class CartCouponHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        cart = cart_for_update(command.customer_id)
        code = command.coupon_code.strip().upper()

        cart.apply_coupon(code, lookup_coupon(code))
        current_domain.repository_for(ShoppingCart).add(cart)
        logger.info("Coupon applied", cart_id=str(cart.id), coupon_code=code, discount=cart.summary.discount)
        return cart

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart = cart_for_update(command.customer_id)
        cart.remove_coupon()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart
