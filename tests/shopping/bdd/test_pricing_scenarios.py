"""BDD tests for cart pricing."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/cart_pricing.feature")


@when(parsers.cfparse("a percentage coupon of {value:g} capped at {cap:g} is applied"))
def apply_capped_percentage(cart, attempt, value, cap):
    attempt(
        cart.apply_coupon,
        "CAPPED",
        {"discount_type": "percentage", "discount_value": value, "max_discount": cap},
    )


@when(parsers.cfparse("a percentage coupon of {value:g} with minimum purchase {floor:g} is applied"))
def apply_percentage_with_floor(cart, attempt, value, floor):
    attempt(
        cart.apply_coupon,
        "FLOOR",
        {"discount_type": "percentage", "discount_value": value, "min_purchase": floor},
    )


@when(parsers.cfparse("a fixed coupon of {value:g} is applied"))
def apply_fixed(cart, attempt, value):
    attempt(cart.apply_coupon, "FIXED", {"discount_type": "fixed", "discount_value": value})


@when("a free shipping coupon is applied")
def apply_free_shipping(cart, attempt):
    attempt(cart.apply_coupon, "FREESHIP", {"discount_type": "free_shipping"})


@when(parsers.cfparse('the shipping method is changed to "{method}"'))
def change_shipping_method(cart, attempt, method):
    attempt(cart.update_shipping_method, method)


@when(parsers.cfparse('the quantity of "{product_id}" drops to {quantity:d}'))
def drop_quantity(cart, catalogue, attempt, product_id, quantity):
    line = next(item for item in cart.items if item.product_id == product_id)
    attempt(cart.update_item_quantity, line.id, quantity, catalogue[product_id])


@then("the cart carries a notice")
def cart_notice(cart):
    assert cart.applied_coupon is None
    assert cart.notice
