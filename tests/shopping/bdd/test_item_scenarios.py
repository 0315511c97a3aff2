"""BDD tests for cart line items."""

from pytest_bdd import parsers, scenarios, when

scenarios("features/cart_items.feature")


@when(parsers.cfparse('{quantity:d} of "{product_id}" in size "{size}" are added'))
def add_sized(cart, catalogue, attempt, quantity, product_id, size):
    attempt(cart.add_item, catalogue[product_id], quantity, selected_attributes=[{"name": "size", "value": size}])


@when(parsers.cfparse('the quantity of "{product_id}" is set to {quantity:d}'))
def set_quantity(cart, catalogue, attempt, product_id, quantity):
    line = next(item for item in cart.items if item.product_id == product_id)
    attempt(cart.update_item_quantity, line.id, quantity, catalogue[product_id])
