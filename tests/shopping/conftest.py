import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def shopping_bed():
    from shopping.domain import shopping

    bed = DomainFixture(shopping)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(shopping_bed):
    with shopping_bed.domain_context():
        yield

        # Clear all databases and drain the event store
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def list_product():
    """Factory: put a product into the local catalogue, or update it when already listed."""
    from shopping.catalog.product import CatalogProduct

    def _list(product_id="prod-001", **overrides):
        repo = current_domain.repository_for(CatalogProduct)
        try:
            product = repo.get(product_id)
        except ObjectNotFoundError:
            values = {
                "product_id": product_id,
                "seller_id": "seller-001",
                "name": f"Product {product_id}",
                "price": 10.0,
                "stock": 10,
                "status": "active",
            }
            values.update(overrides)
            product = CatalogProduct(**values)
        else:
            for field, value in overrides.items():
                setattr(product, field, value)
        repo.add(product)
        return product

    return _list
