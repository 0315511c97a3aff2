"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from shopping.domain import shopping


@shopping.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart, or merged into an existing line."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)
    unit_price = Float(required=True)


@shopping.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@shopping.event(part_of="ShoppingCart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)


@shopping.event(part_of="ShoppingCart")
class CartCleared:
    """All lines were removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@shopping.event(part_of="ShoppingCart")
class CartCouponApplied:
    """A coupon was applied, replacing any previous one."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_type = String(required=True)
    discount = Float(required=True)


@shopping.event(part_of="ShoppingCart")
class CartCouponRemoved:
    """The applied coupon was removed by the customer or revoked by the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    reason = String(required=True)


@shopping.event(part_of="ShoppingCart")
class CartCheckoutDetailsUpdated:
    """An address, shipping choice or payment choice changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    section = String(required=True)
    value = String()


@shopping.event(part_of="ShoppingCart")
class CartConverted:
    """The cart was checked out; the snapshot is handed to order creation."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line snapshots
    total = Float(required=True)
    converted_at = DateTime(required=True)


@shopping.event(part_of="ShoppingCart")
class CartAbandoned:
    """An active cart with items went idle past the threshold."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    abandoned_at = DateTime(required=True)


@shopping.event(part_of="ShoppingCart")
class CartRestored:
    """An abandoned cart was brought back to active."""

    __version__ = 1

    cart_id = Identifier(required=True)
    restored_at = DateTime(required=True)


@shopping.event(part_of="ShoppingCart")
class CartExpired:
    """A live cart's time-to-live elapsed and the cart was retired."""

    __version__ = 1

    cart_id = Identifier(required=True)
    expired_at = DateTime(required=True)
