"""
Cart Errors

Exception taxonomy for cart operations plus the centralized
user-facing messages (avoids string duplication, SonarQube S1192).
"""

# Line item errors
ERROR_INVALID_QUANTITY = "Quantity must be a positive integer"
ERROR_INVALID_PRICE = "Price must be a non-negative amount"
ERROR_DISCOUNT_ABOVE_PRICE = "Discounted price cannot exceed the unit price"
ERROR_MISSING_PRODUCT_ID = "Product has no ID"
ERROR_MISSING_PRODUCT_NAME = "Product has no name"

# Shipping errors
ERROR_INVALID_SHIPPING_METHOD = "Unsupported shipping method"

# Promotion errors
ERROR_PROMO_INVALID = "Invalid promo code"
ERROR_PROMO_EMPTY_CODE = "Please enter a promo code"
ERROR_PROMO_EMPTY_CART = "Cart is empty"
ERROR_PROMO_EXPIRED = "Promo code has expired"
ERROR_PROMO_MINIMUM = "Order subtotal is below the promo code minimum"
ERROR_PROMO_USAGE_LIMIT = "Promo code usage limit reached"
ERROR_PROMO_UNAVAILABLE = "Promo code service unavailable"
ERROR_PROMO_ALREADY_APPLIED = "Remove the current promo code first"
ERROR_PROMO_BUSY = "A promo code is already being applied"
ERROR_PROMO_SUPERSEDED = "Promo code request was cancelled"

# Storage errors
ERROR_PERSISTENCE = "Cart could not be saved"


class CartError(Exception):
    """Base class for all cart errors."""

    default_message = "Cart error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidQuantity(CartError):
    """Quantity below 1 passed to add/update."""

    default_message = ERROR_INVALID_QUANTITY


class InvalidLineItem(CartError):
    """Product snapshot cannot form a valid line item."""

    default_message = ERROR_INVALID_PRICE


class InvalidShippingMethod(CartError):
    default_message = ERROR_INVALID_SHIPPING_METHOD


class PromotionError(CartError):
    """Promotion could not be applied. The cart is left unchanged."""

    default_message = ERROR_PROMO_INVALID


class InvalidPromotion(PromotionError):
    default_message = ERROR_PROMO_INVALID


class PromotionAlreadyApplied(InvalidPromotion):
    default_message = ERROR_PROMO_ALREADY_APPLIED


class PromotionExpired(PromotionError):
    default_message = ERROR_PROMO_EXPIRED


class MinimumNotMet(PromotionError):
    default_message = ERROR_PROMO_MINIMUM


class PromotionUsageLimitReached(PromotionError):
    default_message = ERROR_PROMO_USAGE_LIMIT


class PromotionUnavailable(PromotionError):
    """Resolver could not be reached or answered with a server error."""

    default_message = ERROR_PROMO_UNAVAILABLE


class PromotionBusy(PromotionError):
    default_message = ERROR_PROMO_BUSY


class PromotionSuperseded(PromotionError):
    """The cart changed (clear / remove) while validation was in flight."""

    default_message = ERROR_PROMO_SUPERSEDED


class PersistenceFailure(CartError):
    """Write-through to storage failed. Never raised from facade operations."""

    default_message = ERROR_PERSISTENCE


__all__ = [
    "CartError",
    "InvalidQuantity",
    "InvalidLineItem",
    "InvalidShippingMethod",
    "PromotionError",
    "InvalidPromotion",
    "PromotionAlreadyApplied",
    "PromotionExpired",
    "MinimumNotMet",
    "PromotionUsageLimitReached",
    "PromotionUnavailable",
    "PromotionBusy",
    "PromotionSuperseded",
    "PersistenceFailure",
]
