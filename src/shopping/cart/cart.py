"""Shopping cart aggregate — one customer's in-progress purchase.

The cart owns its line items, the applied coupon, addresses and the chosen
shipping and payment methods. Every mutating method finishes with an explicit
``_refresh`` step that recomputes the summary from scratch, bumps
``last_activity`` and rolls the cart's time-to-live.

State machine:
    ACTIVE → ABANDONED   (idle for more than 24h with items, see abandonment.py)
    ABANDONED → ACTIVE   (restore)
    ACTIVE → CONVERTED   (convert_to_order, terminal)
    ACTIVE/ABANDONED → EXPIRED   (time-to-live elapsed, terminal)

The cart never talks to the catalogue itself. Callers pass the product
records it needs to check status, stock and price.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from shopping.cart.events import (
    CartAbandoned,
    CartCheckoutDetailsUpdated,
    CartCleared,
    CartConverted,
    CartCouponApplied,
    CartCouponRemoved,
    CartExpired,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
    CartRestored,
)
from shopping.cart.exceptions import (
    CartStateError,
    CouponError,
    ItemNotFoundError,
    ProductUnavailableError,
    StockError,
)
from shopping.cart.pricing import (
    CartSummary,
    DiscountType,
    ShippingMethod,
    compute_summary,
    items_by_seller,
    line_total,
    subtotal_of,
)
from shopping.domain import shopping

CART_TTL = timedelta(days=30)
IDLE_THRESHOLD = timedelta(hours=24)

ADDRESS_FIELDS = ("name", "phone_number", "address", "city", "state", "country", "postal_code")
PAYMENT_DETAIL_FIELDS = ("card_last_four", "card_brand", "bank_name", "account_last_four", "wallet_address")

# Catalogue status a product must carry to be sold
PURCHASABLE_STATUS = "active"


class CartStatus(Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"
    EXPIRED = "expired"


class PaymentMethod(Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"
    CASH_ON_DELIVERY = "cash_on_delivery"
    CRYPTO = "crypto"


def utc(value):
    """Normalize a datetime to an aware UTC datetime. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_attributes(attributes) -> list[dict]:
    """Accept ``{name, value}`` dicts or ``(name, value)`` pairs."""
    normalized = []
    for attribute in attributes or []:
        if isinstance(attribute, dict):
            name, value = attribute.get("name"), attribute.get("value")
        else:
            name, value = attribute
        normalized.append({"name": str(name), "value": str(value)})
    return normalized


def attribute_key(attributes) -> tuple:
    """Order-insensitive identity of a variant's attribute set."""
    return tuple(sorted((a["name"], a["value"]) for a in normalize_attributes(attributes)))


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@shopping.value_object(part_of="ShoppingCart")
class CartAddress:
    """A shipping or billing address. Merge-patched by replacing it wholesale."""

    name = String(max_length=100)
    phone_number = String(max_length=30)
    address = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100)
    postal_code = String(max_length=20)


@shopping.value_object(part_of="ShoppingCart")
class AppliedCoupon:
    """A discount rule applied to the cart.

    Eligibility (expiry and minimum purchase) is checked when the coupon is
    applied. Afterwards the cart only re-checks the minimum purchase, and
    revokes the coupon when the subtotal drops below it.
    """

    code = String(required=True, max_length=100)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    min_purchase = Float(min_value=0.0)
    expires_at = DateTime()
    applied_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@shopping.entity(part_of="ShoppingCart")
class CartItem:
    """One product variant and its quantity. ``unit_price`` is captured at add time."""

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    selected_attributes = Text()  # JSON: list of {name, value}
    notes = Text()
    added_at = DateTime()
    updated_at = DateTime()

    @property
    def attributes(self) -> list[dict]:
        return json.loads(self.selected_attributes) if self.selected_attributes else []


# ---------------------------------------------------------------------------
# Snapshots (plain dicts handed to order creation and the API)
# ---------------------------------------------------------------------------
def line_snapshot(item) -> dict:
    return {
        "item_id": str(item.id),
        "product_id": str(item.product_id),
        "seller_id": str(item.seller_id),
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "line_total": line_total(item),
        "selected_attributes": item.attributes,
        "notes": item.notes,
        "added_at": item.added_at,
        "updated_at": item.updated_at,
    }


def summary_snapshot(summary) -> dict:
    summary = summary or CartSummary()
    return {
        "total_items": summary.total_items,
        "total_quantity": summary.total_quantity,
        "subtotal": summary.subtotal,
        "shipping": summary.shipping,
        "tax": summary.tax,
        "discount": summary.discount,
        "total": summary.total,
    }


def address_snapshot(address) -> dict | None:
    if address is None:
        return None
    return {field: getattr(address, field) for field in ADDRESS_FIELDS}


def coupon_snapshot(coupon) -> dict | None:
    if coupon is None:
        return None
    return {
        "code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "max_discount": coupon.max_discount,
        "min_purchase": coupon.min_purchase,
        "expires_at": coupon.expires_at,
        "applied_at": coupon.applied_at,
    }


def _merge_address(current, patch: dict):
    unknown = sorted(set(patch) - set(ADDRESS_FIELDS))
    if unknown:
        raise ValidationError({"address": [f"Unknown address fields: {', '.join(unknown)}"]})

    merged = address_snapshot(current) or {}
    merged.update({field: value for field, value in patch.items() if value is not None})
    return CartAddress(**merged)


def _ensure_purchasable(product, name=None):
    if product is None:
        raise ProductUnavailableError(
            {"product": [f'Product "{name or "unknown"}" is no longer available']},
            context={"product_name": name},
        )
    if product.status != PURCHASABLE_STATUS:
        raise ProductUnavailableError(
            {"product": [f'Product "{product.name}" is not available for purchase']},
            context={"product_id": str(product.product_id), "status": product.status},
        )


def _ensure_stock(product, requested, code, item_id=None):
    available = product.stock or 0
    if available < requested:
        raise StockError(
            {"quantity": [f'Only {available} items available in stock for "{product.name}"']},
            code=code,
            context={
                "item_id": item_id,
                "product_id": str(product.product_id),
                "product_name": product.name,
                "available": available,
                "requested": requested,
            },
        )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@shopping.aggregate
class ShoppingCart:
    """A customer's cart, the consistency boundary for its lines and totals.

    ``owner_key`` is unique across carts: a live cart carries the customer id,
    a converted or expired cart carries ``<customer_id>:<cart_id>``. The store
    therefore holds at most one live cart per customer while keeping retired
    carts as history.
    """

    customer_id = Identifier(required=True)
    owner_key = String(required=True, max_length=255, unique=True)
    items = HasMany(CartItem)
    summary = ValueObject(CartSummary)
    shipping_address = ValueObject(CartAddress)
    billing_address = ValueObject(CartAddress)
    billing_same_as_shipping = Boolean(default=True)
    shipping_method = String(choices=ShippingMethod, default=ShippingMethod.STANDARD.value)
    shipping_provider = String(max_length=100)
    estimated_delivery_from = DateTime()
    estimated_delivery_to = DateTime()
    payment_method = String(choices=PaymentMethod)
    payment_details = Text()  # JSON: subset of PAYMENT_DETAIL_FIELDS
    applied_coupon = ValueObject(AppliedCoupon)
    currency = String(max_length=3, default="USD")
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    notice = String(max_length=255)
    created_at = DateTime()
    last_activity = DateTime()
    abandoned_at = DateTime()
    converted_at = DateTime()
    expires_at = DateTime()

    @invariant.post
    def converted_cart_holds_no_items(self):
        if self.status == CartStatus.CONVERTED.value and self.items:
            raise ValidationError({"items": ["A converted cart cannot hold items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id, currency="USD"):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            owner_key=str(customer_id),
            summary=CartSummary(),
            status=CartStatus.ACTIVE.value,
            currency=currency,
            created_at=now,
            last_activity=now,
            expires_at=now + CART_TTL,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_empty(self) -> bool:
        return len(self.items) == 0

    def is_expired(self, as_of=None) -> bool:
        as_of = utc(as_of) or datetime.now(UTC)
        return self.expires_at is not None and as_of > utc(self.expires_at)

    def has_product(self, product_id) -> bool:
        return bool(self._lines_for(product_id))

    @property
    def payment_detail_values(self) -> dict:
        return json.loads(self.payment_details) if self.payment_details else {}

    def items_by_seller(self) -> list[dict]:
        return [
            {
                "seller_id": group["seller_id"],
                "items": [line_snapshot(item) for item in group["items"]],
                "subtotal": group["subtotal"],
            }
            for group in items_by_seller(self.items)
        ]

    def snapshot(self) -> dict:
        """Everything order creation needs, as plain data."""
        billing = self.shipping_address if self.billing_same_as_shipping else self.billing_address
        return {
            "cart_id": str(self.id),
            "customer_id": str(self.customer_id),
            "status": self.status,
            "items": [line_snapshot(item) for item in self.items],
            "summary": summary_snapshot(self.summary),
            "shipping_address": address_snapshot(self.shipping_address),
            "billing_address": address_snapshot(billing),
            "billing_same_as_shipping": self.billing_same_as_shipping,
            "shipping_method": self.shipping_method,
            "shipping_provider": self.shipping_provider,
            "estimated_delivery": {
                "from": self.estimated_delivery_from,
                "to": self.estimated_delivery_to,
            },
            "payment_method": self.payment_method,
            "payment_details": self.payment_detail_values,
            "applied_coupon": coupon_snapshot(self.applied_coupon),
            "currency": self.currency,
        }

    def validate(self, products: dict) -> dict:
        """Pre-flight checkout against current catalogue data. Never mutates the cart.

        ``products`` maps product id to its catalogue record, or ``None`` when
        the product no longer exists.
        """
        issues = self._availability_issues(products, include_price=True)

        results = []
        for item in self.items:
            product = products.get(str(item.product_id))
            item_issues = [issue["message"] for issue in issues if issue["item_id"] == str(item.id)]
            results.append(
                {
                    "item_id": str(item.id),
                    "product_id": str(item.product_id),
                    "name": product.name if product else item.product_name,
                    "requested_quantity": item.quantity,
                    "available_stock": product.stock if product else 0,
                    "price": item.unit_price,
                    "current_price": product.price if product else None,
                    "is_available": product is not None and product.status == PURCHASABLE_STATUS,
                    "issues": item_issues,
                    "is_valid": not item_issues,
                }
            )

        return {"valid": not issues, "issues": issues, "items": results}

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product, quantity=1, selected_attributes=None, notes=None):
        """Add a product variant, merging into an existing line with the same attribute set."""
        self._ensure_active("add items to")
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        _ensure_purchasable(product)

        attributes = normalize_attributes(selected_attributes)
        key = attribute_key(attributes)
        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product.product_id) and attribute_key(i.attributes) == key
            ),
            None,
        )

        requested = quantity + (existing.quantity if existing else 0)
        _ensure_stock(product, requested, code="out_of_stock", item_id=str(existing.id) if existing else None)

        now = datetime.now(UTC)
        with atomic_change(self):
            if existing:
                existing.quantity = requested
                existing.updated_at = now
                if notes:
                    existing.notes = notes
                item = existing
            else:
                item = CartItem(
                    product_id=product.product_id,
                    seller_id=product.seller_id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=product.price,
                    selected_attributes=json.dumps(attributes),
                    notes=notes,
                    added_at=now,
                    updated_at=now,
                )
                self.add_items(item)
            self._refresh(now)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                quantity=quantity,
                line_quantity=item.quantity,
                unit_price=item.unit_price,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity, product=None):
        """Set a line's quantity. Anything below 1 removes the line."""
        self._ensure_active("update items in")
        item = self._find_item(item_id)

        if quantity < 1:
            self.remove_item(item_id)
            return None

        if product is None:
            _ensure_purchasable(None, item.product_name)
        _ensure_stock(product, quantity, code="insufficient_stock", item_id=str(item.id))

        self._set_quantity(item, quantity)
        return item

    def remove_item(self, item_id):
        self._ensure_active("remove items from")
        item = self._find_item(item_id)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.remove_items(item)
            self._refresh(now)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item.id), product_id=str(item.product_id)))

    def clear(self):
        """Empty the cart. Addresses and methods are kept."""
        self._ensure_active("clear")

        removed = len(self.items)
        now = datetime.now(UTC)
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self._refresh(now)

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=removed))

    # Product-keyed operations, used by clients that never see line ids.
    def increase_quantity(self, product_id, by=1, product=None):
        if by < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        line = self._first_line_for(product_id)
        return self.update_item_quantity(line.id, line.quantity + by, product)

    def decrease_quantity(self, product_id, by=1):
        self._ensure_active("update items in")
        if by < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        line = self._first_line_for(product_id)

        remaining = line.quantity - by
        if remaining < 1:
            self.remove_item(line.id)
            return None

        self._set_quantity(line, remaining)
        return line

    def remove_product(self, product_id):
        """Remove every line of ``product_id``, whatever its attributes."""
        self._ensure_active("remove items from")
        lines = self._lines_for(product_id)
        if not lines:
            raise ItemNotFoundError(
                {"product_id": ["Product is not in the cart"]},
                context={"product_id": str(product_id)},
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            for line in lines:
                self.remove_items(line)
            self._refresh(now)

        for line in lines:
            self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(line.id), product_id=str(line.product_id)))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, code, coupon_data: dict):
        """Apply a coupon, replacing any coupon already on the cart."""
        self._ensure_active("apply a coupon to")
        if self.is_empty():
            raise CartStateError({"cart": ["Cannot apply a coupon to an empty cart"]}, code="empty_cart")

        now = datetime.now(UTC)
        expires_at = utc(coupon_data.get("expires_at"))
        if expires_at is not None and expires_at < now:
            raise CouponError(
                {"coupon_code": [f"Coupon {code} has expired"]},
                code="coupon_expired",
                context={"coupon_code": code, "expires_at": expires_at.isoformat()},
            )

        discount_type = coupon_data.get("discount_type", DiscountType.PERCENTAGE.value)
        discount_value = coupon_data.get("discount_value") or 0.0
        if discount_type == DiscountType.PERCENTAGE.value and not 0 <= discount_value <= 100:
            raise ValidationError({"discount_value": ["Percentage discounts must be between 0 and 100"]})

        min_purchase = coupon_data.get("min_purchase")
        subtotal = subtotal_of(self.items)
        if min_purchase and subtotal < min_purchase:
            raise CouponError(
                {"coupon_code": [f"Minimum purchase of ${min_purchase:.2f} required for coupon {code}"]},
                code="min_purchase_not_met",
                context={"coupon_code": code, "min_purchase": min_purchase, "subtotal": subtotal},
            )

        coupon = AppliedCoupon(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            max_discount=coupon_data.get("max_discount"),
            min_purchase=min_purchase,
            expires_at=expires_at,
            applied_at=now,
        )
        with atomic_change(self):
            self.applied_coupon = coupon
            self._refresh(now)

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_code=code,
                discount_type=discount_type,
                discount=self.summary.discount,
            )
        )

    def remove_coupon(self):
        self._ensure_active("remove a coupon from")

        coupon = self.applied_coupon
        now = datetime.now(UTC)
        with atomic_change(self):
            self.applied_coupon = None
            self._refresh(now)

        if coupon is not None:
            self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=coupon.code, reason="removed"))

    # -------------------------------------------------------------------
    # Addresses, shipping and payment
    # -------------------------------------------------------------------
    def update_shipping_address(self, **fields):
        self._ensure_active("update the shipping address of")

        address = _merge_address(self.shipping_address, fields)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.shipping_address = address
            if self.billing_same_as_shipping:
                self.billing_address = address
            self._refresh(now)

        self.raise_(CartCheckoutDetailsUpdated(cart_id=str(self.id), section="shipping_address"))

    def update_billing_address(self, same_as_shipping=None, **fields):
        """Mirror the shipping address, or detach billing and patch it independently."""
        self._ensure_active("update the billing address of")

        if same_as_shipping:
            billing = self.shipping_address
        else:
            billing = _merge_address(self.billing_address, fields)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.billing_same_as_shipping = bool(same_as_shipping)
            self.billing_address = billing
            self._refresh(now)

        self.raise_(
            CartCheckoutDetailsUpdated(
                cart_id=str(self.id),
                section="billing_address",
                value="same_as_shipping" if same_as_shipping else "custom",
            )
        )

    def update_shipping_method(self, method, provider=None, estimated_delivery_from=None, estimated_delivery_to=None):
        self._ensure_active("change the shipping method of")
        if method not in {m.value for m in ShippingMethod}:
            raise ValidationError({"shipping_method": [f"Invalid shipping method: {method}"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.shipping_method = method
            self.shipping_provider = provider
            if estimated_delivery_from or estimated_delivery_to:
                self.estimated_delivery_from = estimated_delivery_from
                self.estimated_delivery_to = estimated_delivery_to
            self._refresh(now)

        self.raise_(CartCheckoutDetailsUpdated(cart_id=str(self.id), section="shipping_method", value=method))

    def update_payment_method(self, method, details: dict | None = None):
        """Record the payment choice. No payment is taken here."""
        self._ensure_active("change the payment method of")
        if method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Invalid payment method: {method}"]})

        details = {key: value for key, value in (details or {}).items() if value is not None}
        unknown = sorted(set(details) - set(PAYMENT_DETAIL_FIELDS))
        if unknown:
            raise ValidationError({"payment_details": [f"Unsupported payment details: {', '.join(unknown)}"]})

        merged = {**self.payment_detail_values, **details}
        now = datetime.now(UTC)
        with atomic_change(self):
            self.payment_method = method
            self.payment_details = json.dumps(merged)
            self._refresh(now)

        self.raise_(CartCheckoutDetailsUpdated(cart_id=str(self.id), section="payment_method", value=method))

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def convert_to_order(self, products: dict) -> dict:
        """Check out: re-validate every line, then clear the cart and mark it converted.

        Returns the snapshot of the cart as it was immediately before clearing.
        Captured unit prices stand; only existence, status and stock are
        re-checked against ``products``.
        """
        if self.is_empty():
            raise CartStateError({"cart": ["Cannot convert an empty cart to an order"]}, code="empty_cart")
        self._ensure_active("check out")
        if self.shipping_address is None or not self.shipping_address.address:
            raise CartStateError(
                {"shipping_address": ["Shipping address is required"]},
                code="missing_shipping_address",
            )
        if not self.payment_method:
            raise CartStateError({"payment_method": ["Payment method is required"]}, code="missing_payment_method")

        issues = self._availability_issues(products, include_price=False)
        if issues:
            first = issues[0]
            error_class = StockError if first["issue"] == "insufficient_stock" else ProductUnavailableError
            raise error_class(
                {"items": [issue["message"] for issue in issues]},
                code=error_class.code,
                context=first,
                issues=issues,
            )

        snapshot = self.snapshot()
        now = datetime.now(UTC)
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.applied_coupon = None
            self.status = CartStatus.CONVERTED.value
            self.converted_at = now
            self.owner_key = self._archived_owner_key()
            self._refresh(now)

        snapshot["converted_at"] = now
        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                items=json.dumps(snapshot["items"], default=str),
                total=snapshot["summary"]["total"],
                converted_at=now,
            )
        )
        return snapshot

    def mark_abandoned(self, as_of=None, idle_threshold=IDLE_THRESHOLD) -> bool:
        """Flag the cart abandoned when it is active, non-empty and idle past the threshold.

        Returns whether the transition happened; calling it again is a no-op.
        """
        if self.status != CartStatus.ACTIVE.value or self.is_empty():
            return False

        as_of = utc(as_of) or datetime.now(UTC)
        if as_of - utc(self.last_activity) <= idle_threshold:
            return False

        self.status = CartStatus.ABANDONED.value
        self.abandoned_at = as_of
        self.raise_(CartAbandoned(cart_id=str(self.id), customer_id=str(self.customer_id), abandoned_at=as_of))
        return True

    def restore(self):
        if self.status != CartStatus.ABANDONED.value:
            raise CartStateError(
                {"status": ["Only abandoned carts can be restored"]},
                context={"status": self.status},
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = CartStatus.ACTIVE.value
            self.abandoned_at = None
            self._refresh(now)

        self.raise_(CartRestored(cart_id=str(self.id), restored_at=now))

    def expire(self, as_of=None):
        """Retire a live cart whose time-to-live elapsed, freeing the customer's cart slot."""
        if self.status not in (CartStatus.ACTIVE.value, CartStatus.ABANDONED.value):
            raise CartStateError(
                {"status": [f"A {self.status} cart cannot expire"]},
                context={"status": self.status},
            )

        as_of = utc(as_of) or datetime.now(UTC)
        self.status = CartStatus.EXPIRED.value
        self.owner_key = self._archived_owner_key()
        self.raise_(CartExpired(cart_id=str(self.id), expired_at=as_of))

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _refresh(self, now):
        """Recompute the summary and roll lifecycle timestamps. Ends every mutation."""
        coupon = self.applied_coupon
        self.notice = None

        if coupon is not None and coupon.min_purchase and subtotal_of(self.items) < coupon.min_purchase:
            self.applied_coupon = None
            self.notice = (
                f"Coupon {coupon.code} was removed: minimum purchase of ${coupon.min_purchase:.2f} is no longer met"
            )
            self.raise_(
                CartCouponRemoved(cart_id=str(self.id), coupon_code=coupon.code, reason="min_purchase_not_met")
            )
            coupon = None

        self.summary = compute_summary(self.items, self.shipping_method, coupon)
        self.last_activity = now
        if self.status == CartStatus.ACTIVE.value and self.items:
            self.expires_at = now + CART_TTL

    def _set_quantity(self, item, quantity):
        previous = item.quantity
        now = datetime.now(UTC)
        with atomic_change(self):
            item.quantity = quantity
            item.updated_at = now
            self._refresh(now)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous,
                new_quantity=quantity,
            )
        )

    def _ensure_active(self, action):
        if self.status != CartStatus.ACTIVE.value:
            raise CartStateError(
                {"status": [f"Cannot {action} a cart that is {self.status}"]},
                code="cart_not_active",
                context={"status": self.status},
            )

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ItemNotFoundError({"item_id": ["Item not found in cart"]}, context={"item_id": str(item_id)})
        return item

    def _lines_for(self, product_id):
        return [i for i in self.items if str(i.product_id) == str(product_id)]

    def _first_line_for(self, product_id):
        lines = self._lines_for(product_id)
        if not lines:
            raise ItemNotFoundError(
                {"product_id": ["Product is not in the cart"]},
                context={"product_id": str(product_id)},
            )
        return lines[0]

    def _archived_owner_key(self):
        return f"{self.customer_id}:{self.id}"

    def _availability_issues(self, products: dict, include_price: bool) -> list[dict]:
        issues = []
        for item in self.items:
            product = products.get(str(item.product_id))
            base = {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "product_name": product.name if product else item.product_name,
            }

            if product is None:
                issues.append(
                    {
                        **base,
                        "issue": "product_unavailable",
                        "message": f'Product "{item.product_name}" is no longer available',
                    }
                )
                continue

            if product.status != PURCHASABLE_STATUS:
                issues.append(
                    {
                        **base,
                        "issue": "product_inactive",
                        "status": product.status,
                        "message": f'Product "{product.name}" is not available for purchase',
                    }
                )

            available = product.stock or 0
            if available < item.quantity:
                issues.append(
                    {
                        **base,
                        "issue": "insufficient_stock",
                        "available": available,
                        "requested": item.quantity,
                        "message": f'Only {available} items available for "{product.name}"',
                    }
                )

            if include_price and abs((product.price or 0.0) - item.unit_price) >= 0.005:
                issues.append(
                    {
                        **base,
                        "issue": "price_changed",
                        "old_price": item.unit_price,
                        "new_price": product.price,
                        "message": f"Price has changed from ${item.unit_price:.2f} to ${product.price:.2f}",
                    }
                )
        return issues
