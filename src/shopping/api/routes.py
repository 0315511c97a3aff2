"""FastAPI routes for the Shopping domain — the customer's cart and cart administration."""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from shopping.api.schemas import (
    AddItemRequest,
    ApplyCouponRequest,
    BillingAddressRequest,
    DetectAbandonedRequest,
    Envelope,
    PaymentMethodRequest,
    QuantityStepRequest,
    ShippingAddressRequest,
    ShippingMethodRequest,
    UpdateItemQuantityRequest,
)
from shopping.api.security import Identity, current_identity, require_admin
from shopping.cart.abandonment import DetectAbandonedCarts
from shopping.cart.cart import ShoppingCart
from shopping.cart.checkout_details import (
    UpdateBillingAddress,
    UpdatePaymentMethod,
    UpdateShippingAddress,
    UpdateShippingMethod,
)
from shopping.cart.conversion import ConvertCartToOrder
from shopping.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from shopping.cart.expiry import CleanupExpiredCarts
from shopping.cart.helpers import live_cart
from shopping.cart.items import (
    AddItemToCart,
    DecreaseProductQuantity,
    IncreaseProductQuantity,
    RemoveCartItem,
    RemoveProductFromCart,
    UpdateCartItemQuantity,
)
from shopping.cart.management import ClearCart, GetOrCreateCart, RestoreCart
from shopping.catalog.gateway import products_for


def cart_data(cart: ShoppingCart) -> dict:
    """Client-facing rendering of a cart."""
    return {
        **cart.snapshot(),
        "notice": cart.notice,
        "is_empty": cart.is_empty(),
        "created_at": cart.created_at,
        "last_activity": cart.last_activity,
        "abandoned_at": cart.abandoned_at,
        "converted_at": cart.converted_at,
        "expires_at": cart.expires_at,
    }


def _updated(cart: ShoppingCart, message: str) -> Envelope:
    if cart.notice:
        message = f"{message}. {cart.notice}"
    return Envelope(message=message, data=cart_data(cart))


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=Envelope)
async def get_cart(identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(GetOrCreateCart(customer_id=identity.user_id))
    return Envelope(message="Cart retrieved successfully", data=cart_data(cart))


@cart_router.post("/items", response_model=Envelope)
async def add_item(body: AddItemRequest, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(
        AddItemToCart(
            customer_id=identity.user_id,
            product_id=body.product_id,
            quantity=body.quantity,
            selected_attributes=json.dumps([a.model_dump() for a in body.selected_attributes]),
            notes=body.notes,
        )
    )
    return _updated(cart, "Item added to cart successfully")


@cart_router.put("/items/{item_id}", response_model=Envelope)
async def update_item_quantity(
    item_id: str,
    body: UpdateItemQuantityRequest,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    cart = _process(
        UpdateCartItemQuantity(
            customer_id=identity.user_id,
            item_id=item_id,
            quantity=body.quantity,
        )
    )
    return _updated(cart, "Cart item updated successfully")


@cart_router.delete("/items/{item_id}", response_model=Envelope)
async def remove_item(item_id: str, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(RemoveCartItem(customer_id=identity.user_id, item_id=item_id))
    return _updated(cart, "Item removed from cart successfully")


@cart_router.delete("/clear", response_model=Envelope)
async def clear_cart(identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(ClearCart(customer_id=identity.user_id))
    return _updated(cart, "Cart cleared successfully")


@cart_router.post("/products/{product_id}/increase", response_model=Envelope)
async def increase_product_quantity(
    product_id: str,
    body: QuantityStepRequest | None = None,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    by = body.by if body else 1
    cart = _process(IncreaseProductQuantity(customer_id=identity.user_id, product_id=product_id, by=by))
    return _updated(cart, "Quantity increased")


@cart_router.post("/products/{product_id}/decrease", response_model=Envelope)
async def decrease_product_quantity(
    product_id: str,
    body: QuantityStepRequest | None = None,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    by = body.by if body else 1
    cart = _process(DecreaseProductQuantity(customer_id=identity.user_id, product_id=product_id, by=by))
    return _updated(cart, "Quantity decreased")


@cart_router.delete("/products/{product_id}", response_model=Envelope)
async def remove_product(product_id: str, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(RemoveProductFromCart(customer_id=identity.user_id, product_id=product_id))
    return _updated(cart, "Product removed from cart")


@cart_router.get("/products/{product_id}", response_model=Envelope)
async def has_product(product_id: str, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = current_domain.repository_for(ShoppingCart).live_cart_for(identity.user_id)
    in_cart = cart is not None and cart.has_product(product_id)
    return Envelope(data={"product_id": product_id, "in_cart": in_cart})


@cart_router.post("/coupon", response_model=Envelope)
async def apply_coupon(body: ApplyCouponRequest, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(ApplyCouponToCart(customer_id=identity.user_id, coupon_code=body.coupon_code))
    return _updated(cart, "Coupon applied successfully")


@cart_router.delete("/coupon", response_model=Envelope)
async def remove_coupon(identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(RemoveCouponFromCart(customer_id=identity.user_id))
    return _updated(cart, "Coupon removed successfully")


@cart_router.put("/shipping-address", response_model=Envelope)
async def update_shipping_address(
    body: ShippingAddressRequest,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    cart = _process(UpdateShippingAddress(customer_id=identity.user_id, **body.model_dump(exclude_none=True)))
    return _updated(cart, "Shipping address updated successfully")


@cart_router.put("/billing-address", response_model=Envelope)
async def update_billing_address(
    body: BillingAddressRequest,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    cart = _process(UpdateBillingAddress(customer_id=identity.user_id, **body.model_dump(exclude_none=True)))
    return _updated(cart, "Billing address updated successfully")


@cart_router.put("/shipping-method", response_model=Envelope)
async def update_shipping_method(
    body: ShippingMethodRequest,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    eta = body.estimated_delivery
    cart = _process(
        UpdateShippingMethod(
            customer_id=identity.user_id,
            method=body.method,
            provider=body.provider,
            estimated_delivery_from=eta.from_ if eta else None,
            estimated_delivery_to=eta.to if eta else None,
        )
    )
    return _updated(cart, "Shipping method updated successfully")


@cart_router.put("/payment-method", response_model=Envelope)
async def update_payment_method(
    body: PaymentMethodRequest,
    identity: Identity = Depends(current_identity),
) -> Envelope:
    details = body.details.model_dump(exclude_none=True) if body.details else None
    cart = _process(
        UpdatePaymentMethod(
            customer_id=identity.user_id,
            method=body.method,
            details=json.dumps(details) if details else None,
        )
    )
    return _updated(cart, "Payment method updated successfully")


@cart_router.post("/checkout", response_model=Envelope)
async def checkout(identity: Identity = Depends(current_identity)) -> Envelope:
    """Convert the cart into an order snapshot for order creation."""
    snapshot = _process(ConvertCartToOrder(customer_id=identity.user_id))
    return Envelope(message="Cart converted to order successfully", data=snapshot)


@cart_router.get("/validate", response_model=Envelope)
async def validate_cart(identity: Identity = Depends(current_identity)) -> Envelope:
    """Pre-flight checkout. Reports issues without changing the cart."""
    cart = live_cart(identity.user_id)
    report = cart.validate(products_for(cart.items))
    message = "Cart is valid" if report["valid"] else "Cart has issues"
    return Envelope(message=message, data=report)


@cart_router.get("/summary", response_model=Envelope)
async def cart_summary(identity: Identity = Depends(current_identity)) -> Envelope:
    cart = live_cart(identity.user_id)
    return Envelope(
        message="Cart summary retrieved successfully",
        data={
            "cart": cart_data(cart),
            "summary": cart.snapshot()["summary"],
            "items_by_seller": cart.items_by_seller(),
        },
    )


@cart_router.post("/restore/{cart_id}", response_model=Envelope)
async def restore_cart(cart_id: str, identity: Identity = Depends(current_identity)) -> Envelope:
    cart = _process(RestoreCart(customer_id=identity.user_id, cart_id=cart_id))
    return Envelope(message="Cart restored successfully", data=cart_data(cart))


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/carts", tags=["cart-admin"], dependencies=[Depends(require_admin)])


@admin_router.get("/abandoned", response_model=Envelope)
async def list_abandoned_carts(
    days: int = Query(default=1, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> Envelope:
    result = current_domain.repository_for(ShoppingCart).find_abandoned(days=days, page=page, limit=limit)
    return Envelope(
        message="Abandoned carts retrieved successfully",
        data={
            "carts": [cart_data(cart) for cart in result["carts"]],
            "pagination": result["pagination"],
            "filters": {"days": days, "cutoff": result["cutoff"]},
        },
    )


@admin_router.post("/mark-abandoned", response_model=Envelope)
async def mark_abandoned(body: DetectAbandonedRequest | None = None) -> Envelope:
    body = body or DetectAbandonedRequest()
    count = _process(DetectAbandonedCarts(idle_threshold_hours=body.idle_threshold_hours, as_of=body.as_of))
    return Envelope(message="Abandoned carts marked successfully", data={"abandoned_count": count})


@admin_router.delete("/cleanup", response_model=Envelope)
async def cleanup_expired(as_of: datetime | None = Query(default=None)) -> Envelope:
    count = _process(CleanupExpiredCarts(as_of=as_of))
    return Envelope(message="Expired carts cleaned up successfully", data={"deleted_count": count})


@admin_router.get("/{cart_id}", response_model=Envelope)
async def get_cart_by_id(cart_id: str) -> Envelope:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return Envelope(message="Cart retrieved successfully", data=cart_data(cart))
