"""Application tests for abandonment detection and the abandoned-cart listing."""

from datetime import UTC, datetime, timedelta

from protean import current_domain
from shopping.cart.abandonment import DetectAbandonedCarts
from shopping.cart.cart import CartStatus, ShoppingCart
from shopping.cart.items import AddItemToCart
from shopping.cart.management import GetOrCreateCart


def _cart_with_items(customer_id, list_product, idle_hours=0):
    list_product("prod-001")
    cart = current_domain.process(
        AddItemToCart(customer_id=customer_id, product_id="prod-001", quantity=1),
        asynchronous=False,
    )
    if idle_hours:
        repo = current_domain.repository_for(ShoppingCart)
        stored = repo.get(cart.id)
        stored.last_activity = datetime.now(UTC) - timedelta(hours=idle_hours)
        repo.add(stored)
    return cart.id


def _detect(**kwargs):
    return current_domain.process(DetectAbandonedCarts(**kwargs), asynchronous=False)


class TestDetectAbandonedCarts:
    def test_no_carts_is_noop(self):
        assert _detect() == 0

    def test_idle_cart_is_abandoned(self, list_product):
        cart_id = _cart_with_items("cust-idle", list_product, idle_hours=25)

        assert _detect() == 1
        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.ABANDONED.value
        assert cart.abandoned_at is not None

    def test_recent_cart_is_untouched(self, list_product):
        cart_id = _cart_with_items("cust-recent", list_product, idle_hours=2)

        assert _detect() == 0
        assert current_domain.repository_for(ShoppingCart).get(cart_id).status == CartStatus.ACTIVE.value

    def test_empty_idle_cart_is_untouched(self):
        cart = current_domain.process(GetOrCreateCart(customer_id="cust-empty"), asynchronous=False)
        repo = current_domain.repository_for(ShoppingCart)
        stored = repo.get(cart.id)
        stored.last_activity = datetime.now(UTC) - timedelta(days=3)
        repo.add(stored)

        assert _detect() == 0

    def test_rerun_is_idempotent(self, list_product):
        _cart_with_items("cust-idle", list_product, idle_hours=25)

        assert _detect() == 1
        assert _detect() == 0

    def test_threshold_and_clock_can_be_overridden(self, list_product):
        _cart_with_items("cust-soon", list_product)

        assert _detect(idle_threshold_hours=1, as_of=datetime.now(UTC) + timedelta(hours=2)) == 1

    def test_status_scan_pages_through_every_cart(self, list_product):
        for n in range(5):
            _cart_with_items(f"cust-page-{n}", list_product)

        repo = current_domain.repository_for(ShoppingCart)
        scanned = list(repo.iter_with_status(CartStatus.ACTIVE.value, page_size=2))
        assert len(scanned) == 5
        assert len({str(cart.id) for cart in scanned}) == 5


class TestFindAbandoned:
    def test_lists_carts_idle_longer_than_days(self, list_product):
        old = _cart_with_items("cust-old", list_product, idle_hours=24 * 5)
        _cart_with_items("cust-new", list_product, idle_hours=30)
        _detect()

        result = current_domain.repository_for(ShoppingCart).find_abandoned(days=3)
        assert [str(cart.id) for cart in result["carts"]] == [str(old)]
        assert result["pagination"]["total"] == 1

    def test_pagination_most_recent_first(self, list_product):
        ids = [_cart_with_items(f"cust-{n}", list_product, idle_hours=48 + n) for n in range(3)]
        _detect()

        repo = current_domain.repository_for(ShoppingCart)
        first_page = repo.find_abandoned(days=1, page=1, limit=2)
        second_page = repo.find_abandoned(days=1, page=2, limit=2)

        assert [str(c.id) for c in first_page["carts"]] == [str(ids[0]), str(ids[1])]
        assert [str(c.id) for c in second_page["carts"]] == [str(ids[2])]
        assert first_page["pagination"]["has_next_page"] is True
        assert second_page["pagination"]["has_prev_page"] is True

    def test_page_past_the_end_keeps_the_total(self, list_product):
        for n in range(3):
            _cart_with_items(f"cust-{n}", list_product, idle_hours=48)
        _detect()

        result = current_domain.repository_for(ShoppingCart).find_abandoned(days=1, page=3, limit=2)

        assert result["carts"] == []
        assert result["pagination"]["total"] == 3
        assert result["pagination"]["total_pages"] == 2
        assert result["pagination"]["has_next_page"] is False
