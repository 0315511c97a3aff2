"""Catalog gateway — synchronous product lookups for the cart.

Status, stock and price checks read the local ``CatalogProduct`` records.
Nothing here writes to them; that is the catalogue event handler's job.
"""

from collections.abc import Iterable

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from shopping.catalog.product import CatalogProduct


def get_product(product_id) -> CatalogProduct | None:
    try:
        return current_domain.repository_for(CatalogProduct).get(str(product_id))
    except ObjectNotFoundError:
        return None


def products_for(items: Iterable) -> dict:
    """Map each line's product id to its current record, or ``None`` when it is gone."""
    products = {}
    for item in items:
        product_id = str(item.product_id)
        if product_id not in products:
            products[product_id] = get_product(product_id)
    return products
