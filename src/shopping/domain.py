"""Shopping bounded context — carts, pricing and the cart lifecycle.

Owns each customer's in-progress purchase: line items, coupon, addresses,
shipping and payment choices, and the active → abandoned → converted/expired
lifecycle. Product data is read from the catalogue; orders are created
downstream from the checkout snapshot.
"""

import structlog
from protean.domain import Domain

shopping = Domain(name="shopping")

logger = structlog.get_logger(__name__)
