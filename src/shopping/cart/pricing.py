"""Pricing & summary engine — derives a cart's totals from its line items.

The summary is never patched incrementally. Every cart mutation calls
``compute_summary`` with the current line items, shipping method and applied
coupon, and replaces the stored ``CartSummary`` wholesale. The function is
pure: same inputs, same summary.

    subtotal = Σ unit_price × quantity
    tax      = subtotal × tax_rate
    shipping = SHIPPING_COSTS[method]          (0 for an empty cart)
    discount = percentage | fixed | free_shipping
    total    = max(0, subtotal + shipping + tax − discount)
"""

from collections.abc import Iterable
from enum import Enum

from protean.fields import Float, Integer

from shopping.domain import shopping

TAX_RATE = 0.10


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    NEXT_DAY = "next_day"
    PICKUP = "pickup"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


SHIPPING_COSTS = {
    ShippingMethod.STANDARD.value: 5.00,
    ShippingMethod.EXPRESS.value: 12.00,
    ShippingMethod.NEXT_DAY.value: 25.00,
    ShippingMethod.PICKUP.value: 0.00,
}


@shopping.value_object(part_of="ShoppingCart")
class CartSummary:
    """Derived totals of a cart. Always recomputed, never authoritative on its own."""

    total_items = Integer(default=0)
    total_quantity = Integer(default=0)
    subtotal = Float(default=0.0)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    discount = Float(default=0.0)
    total = Float(default=0.0)


def _money(amount: float) -> float:
    return round(amount, 2)


def line_total(item) -> float:
    return _money(item.unit_price * item.quantity)


def subtotal_of(items: Iterable) -> float:
    return _money(sum(item.unit_price * item.quantity for item in items))


def shipping_cost(method: str | None, shipping_costs: dict | None = None) -> float:
    costs = SHIPPING_COSTS if shipping_costs is None else shipping_costs
    return _money(costs.get(method or ShippingMethod.STANDARD.value, 0.0))


def coupon_discount(coupon, subtotal: float, shipping: float) -> tuple[float, float]:
    """Return ``(discount, shipping)`` after applying ``coupon``.

    A free-shipping coupon zeroes the shipping charge and reports the amount it
    zeroed as the discount. The other coupon types leave shipping untouched.
    """
    if coupon is None:
        return 0.0, shipping

    discount_type = DiscountType(coupon.discount_type)
    value = coupon.discount_value or 0.0

    if discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * (value / 100)
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
        return _money(discount), shipping

    if discount_type == DiscountType.FIXED:
        return _money(min(value, subtotal)), shipping

    return shipping, 0.0


def compute_summary(
    items: Iterable,
    shipping_method: str | None,
    coupon=None,
    tax_rate: float = TAX_RATE,
    shipping_costs: dict | None = None,
) -> CartSummary:
    """Compute the summary of a set of line items.

    ``items`` are objects exposing ``unit_price`` and ``quantity``; ``coupon``
    exposes ``discount_type``, ``discount_value`` and ``max_discount``.
    """
    items = list(items)

    subtotal = subtotal_of(items)
    shipping = shipping_cost(shipping_method, shipping_costs) if items else 0.0
    tax = _money(subtotal * tax_rate)
    discount, shipping = coupon_discount(coupon, subtotal, shipping)
    total = max(0.0, _money(subtotal + shipping + tax - discount))

    return CartSummary(
        total_items=len(items),
        total_quantity=sum(item.quantity for item in items),
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount=discount,
        total=total,
    )


def items_by_seller(items: Iterable) -> list[dict]:
    """Group line items per seller, preserving first-seen seller order."""
    groups: dict[str, dict] = {}
    for item in items:
        seller_id = str(item.seller_id)
        group = groups.setdefault(seller_id, {"seller_id": seller_id, "items": [], "subtotal": 0.0})
        group["items"].append(item)
        group["subtotal"] = _money(group["subtotal"] + item.unit_price * item.quantity)
    return list(groups.values())
