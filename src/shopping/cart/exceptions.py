"""Typed failures raised by the cart aggregate and its command handlers.

Each failure carries a machine-readable ``code`` plus the context a client
needs to act on it (offending item, available vs requested stock). Business
rule violations extend Protean's ``ValidationError``; missing carts, items and
products extend ``ObjectNotFoundError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class _CartFailure:
    code = "cart_error"

    def _attach(self, code, context, issues):
        if code:
            self.code = code
        self.context = context or {}
        self.issues = issues or []


class CartNotFoundError(_CartFailure, ObjectNotFoundError):
    code = "cart_not_found"

    def __init__(self, messages, code=None, context=None):
        super().__init__(messages)
        self._attach(code, context, None)


class ItemNotFoundError(CartNotFoundError):
    code = "item_not_found"


class ProductNotFoundError(CartNotFoundError):
    code = "product_not_found"


class CartRuleViolation(_CartFailure, ValidationError):
    """Base for 400-class cart failures."""

    def __init__(self, messages, code=None, context=None, issues=None):
        super().__init__(messages)
        self._attach(code, context, issues)


class StockError(CartRuleViolation):
    code = "insufficient_stock"


class ProductUnavailableError(CartRuleViolation):
    code = "product_unavailable"


class CartStateError(CartRuleViolation):
    code = "invalid_transition"


class CouponError(CartStateError):
    code = "invalid_coupon"
