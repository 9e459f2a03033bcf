"""
Cart Router

Shopping cart endpoints. Each response is the cart summary plus the
notifications (toasts) raised while handling the request.
"""
from fastapi import APIRouter, Depends, HTTPException

from storefront.cart import CartService, Product
from storefront.errors import CartError, PromotionBusy, PromotionError, PromotionUnavailable
from storefront.logging import get_logger
from .deps import get_cart_service_for, get_session_id
from .models import (
    AddToCartRequest,
    ApplyPromoRequest,
    ShippingMethodRequest,
    UpdateCartItemRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


def get_cart_service(session_id: str = Depends(get_session_id)) -> CartService:
    return get_cart_service_for(session_id)


def _cart_response(service: CartService) -> dict:
    notifications = service.notifier.drain() if hasattr(service.notifier, "drain") else []
    return {
        "success": True,
        "cart": service.summary(),
        "notifications": [n.to_dict() for n in notifications],
    }


def _raise_http(service: CartService, error: CartError):
    """Map cart errors to HTTP errors (pending notifications are dropped)."""
    if hasattr(service.notifier, "drain"):
        service.notifier.drain()
    if isinstance(error, PromotionBusy):
        status = 409
    elif isinstance(error, PromotionUnavailable):
        status = 503
    else:
        status = 400
    raise HTTPException(status_code=status, detail=error.message)


@router.get("")
async def get_cart(service: CartService = Depends(get_cart_service)):
    """Get the session's cart with totals."""
    return _cart_response(service)


@router.post("/items")
async def add_to_cart(request: AddToCartRequest, service: CartService = Depends(get_cart_service)):
    """Add item to cart (merges with an identical product/size/color line)."""
    try:
        product = Product.from_dict(request.product.model_dump())
        service.add_item(product, request.quantity, request.size, request.color)
    except CartError as e:
        _raise_http(service, e)
    return _cart_response(service)


@router.patch("/items")
async def update_cart_item(request: UpdateCartItemRequest, service: CartService = Depends(get_cart_service)):
    """Update cart item quantity (0 = remove)."""
    try:
        service.update_quantity(request.product_id, request.quantity, request.size, request.color)
    except CartError as e:
        _raise_http(service, e)
    return _cart_response(service)


@router.delete("/items")
async def remove_cart_item(
    product_id: str,
    size: str = "",
    color: str = "",
    service: CartService = Depends(get_cart_service),
):
    """Remove item from cart."""
    service.remove_item(product_id, size, color)
    return _cart_response(service)


@router.delete("/clear")
async def clear_cart(service: CartService = Depends(get_cart_service)):
    service.clear()
    return _cart_response(service)


@router.put("/shipping")
async def set_shipping_method(request: ShippingMethodRequest, service: CartService = Depends(get_cart_service)):
    try:
        service.set_shipping_method(request.method)
    except CartError as e:
        _raise_http(service, e)
    return _cart_response(service)


@router.post("/promo/apply")
async def apply_cart_promo(request: ApplyPromoRequest, service: CartService = Depends(get_cart_service)):
    """Apply promo code to cart."""
    try:
        await service.apply_promotion(request.code)
    except PromotionError as e:
        _raise_http(service, e)
    return _cart_response(service)


@router.post("/promo/remove")
async def remove_cart_promo(service: CartService = Depends(get_cart_service)):
    """Remove promo code from cart."""
    service.remove_promotion()
    return _cart_response(service)
