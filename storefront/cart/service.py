"""Cart service facade: mutations, promotion flow and write-through persistence."""
import asyncio
from typing import Any, Mapping, Optional, Union

from storefront.config import PricingConfig, get_pricing_config
from storefront.errors import (
    InvalidPromotion,
    InvalidQuantity,
    PersistenceFailure,
    PromotionAlreadyApplied,
    PromotionBusy,
    PromotionError,
    PromotionSuperseded,
    PromotionUnavailable,
    ERROR_PROMO_EMPTY_CART,
    ERROR_PROMO_EMPTY_CODE,
)
from storefront.logging import get_logger, sanitize_string_for_logging
from storefront.services.money import to_float
from .models import Cart, LineItem, Product, Promotion, ShippingMethod
from .notifications import LogNotificationSink, NotificationLevel, NotificationSink, send_notification
from .pricing import CartTotals, amount_to_free_shipping, calculate_totals, item_shipping
from .promotions import PromoErrorCode, PromotionResolver, PromoValidationResult
from .storage import CartStore, MemoryCartStore

logger = get_logger(__name__)

ProductLike = Union[Product, Mapping[str, Any]]


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity()
    return quantity


class CartService:
    """
    Owns one session's cart.

    Features:
    - add / remove / update / clear with identity merge on (product, size, color)
    - totals recomputed from scratch after every mutation
    - write-through persistence (best effort, in-memory cart is authoritative)
    - promotion validation with a single in-flight guard
    """

    def __init__(
        self,
        store: Optional[CartStore] = None,
        resolver: Optional[PromotionResolver] = None,
        notifier: Optional[NotificationSink] = None,
        config: Optional[PricingConfig] = None,
    ):
        self.store = store or MemoryCartStore()
        self.resolver = resolver
        self.notifier = notifier or LogNotificationSink()
        self.config = config or get_pricing_config()
        self.cart = self.store.load()
        self._promo_task: Optional[asyncio.Future] = None
        # Bumped whenever an in-flight validation must be discarded
        self._generation = 0

    # ==================== Queries ====================

    @property
    def items(self) -> list[LineItem]:
        return list(self.cart.items)

    @property
    def applied_promotion(self) -> Optional[Promotion]:
        return self.cart.applied_promotion

    @property
    def is_busy(self) -> bool:
        """True while a promotion validation is in flight."""
        return self._promo_task is not None and not self._promo_task.done()

    def totals(self) -> CartTotals:
        return calculate_totals(self.cart, self.config)

    def contains(self, product_id: str, size: str = "", color: str = "") -> bool:
        return self.cart.find_item(product_id, size, color) is not None

    def summary(self) -> dict:
        """Cart summary for UI rendering (JSON-ready)."""
        totals = self.totals()
        promotion = self.cart.applied_promotion
        return {
            "items": [
                {
                    **item.to_dict(),
                    "unit_price": to_float(item.unit_price),
                    "discounted_unit_price": (
                        to_float(item.discounted_unit_price)
                        if item.discounted_unit_price is not None else None
                    ),
                    "flat_shipping_rate": to_float(item.flat_shipping_rate),
                    "line_total": to_float(item.line_total),
                    "item_shipping": to_float(item_shipping(item)),
                }
                for item in self.cart.items
            ],
            **totals.to_dict(),
            "shipping_method": self.cart.shipping_method.value,
            "applied_promotion": {
                "code": promotion.code,
                "type": promotion.type.value,
                "value": to_float(promotion.value),
                "discount_amount": to_float(totals.discount),
            } if promotion else None,
            "item_count": len(self.cart.items),
            "has_shipping_items": any(item.requires_shipping for item in self.cart.items),
            "has_free_shipping": any(item.free_shipping for item in self.cart.items),
            "amount_to_free_shipping": to_float(amount_to_free_shipping(totals, self.config)),
            "currency": self.config.currency,
            "is_busy": self.is_busy,
        }

    # ==================== Mutations ====================

    def add_item(self, product: ProductLike, quantity: int = 1, size: str = "", color: str = "") -> CartTotals:
        """Add a product variant, merging with an existing line of the same identity."""
        if _check_quantity(quantity) < 1:
            raise InvalidQuantity()
        if not isinstance(product, Product):
            product = Product.from_dict(product)

        existing = self.cart.find_item(product.id, size, color)
        if existing:
            existing.quantity += quantity
        else:
            self.cart.items.append(LineItem.from_product(product, quantity, size, color))

        totals = self._commit()
        self._notify(NotificationLevel.SUCCESS, f"{product.name} added to cart!")
        return totals

    def remove_item(self, product_id: str, size: str = "", color: str = "") -> CartTotals:
        """Remove a line. Absent lines are a no-op."""
        item = self.cart.find_item(product_id, size, color)
        if item is None:
            return self.totals()

        self.cart.items.remove(item)
        totals = self._commit()
        self._notify(NotificationLevel.SUCCESS, "Item removed from cart")
        return totals

    def update_quantity(self, product_id: str, new_quantity: int, size: str = "", color: str = "") -> CartTotals:
        """Set a line's quantity; below 1 removes the line."""
        if _check_quantity(new_quantity) < 1:
            return self.remove_item(product_id, size, color)

        item = self.cart.find_item(product_id, size, color)
        if item is None:
            return self.totals()

        item.quantity = new_quantity
        totals = self._commit()
        self._notify(NotificationLevel.SUCCESS, "Cart updated")
        return totals

    def clear(self) -> CartTotals:
        """Empty the cart and drop any promotion (also discards in-flight validation)."""
        self.cart.items = []
        self._drop_promotion()
        totals = self._commit()
        self._notify(NotificationLevel.SUCCESS, "Cart cleared")
        return totals

    def set_shipping_method(self, method: Union[str, ShippingMethod]) -> CartTotals:
        self.cart.shipping_method = ShippingMethod.parse(method)
        totals = self._commit()
        self._notify(NotificationLevel.SUCCESS, "Shipping method updated")
        return totals

    def remove_promotion(self) -> CartTotals:
        """Drop the applied promotion, superseding any in-flight validation."""
        had_promotion = self.cart.applied_promotion is not None or self.is_busy
        self._drop_promotion()
        totals = self._commit()
        if had_promotion:
            self._notify(NotificationLevel.SUCCESS, "Promo code removed")
        return totals

    def reload(self) -> bool:
        """
        Re-read the cart from the store (other processes may have written it).

        Skipped while a promotion validation is in flight; returns whether
        the cart was reloaded.
        """
        if self.is_busy:
            return False
        self.cart = self.store.load()
        return True

    async def apply_promotion(self, code: str) -> Promotion:
        """
        Validate a promo code against the current subtotal and apply it.

        Raises:
            PromotionError subclass on rejection; the cart is left unchanged.
        """
        try:
            promotion = await self._resolve_promotion(code)
        except PromotionError as e:
            self._notify(NotificationLevel.ERROR, e.message)
            raise

        self.cart.applied_promotion = promotion
        self._commit()
        logger.info(f"Applied promo code {sanitize_string_for_logging(promotion.code)}")
        self._notify(NotificationLevel.SUCCESS, f"Promo code {promotion.code} applied")
        return promotion

    # ==================== Internals ====================

    async def _resolve_promotion(self, code: str) -> Promotion:
        code = (code or "").strip().upper()
        if not code:
            raise InvalidPromotion(ERROR_PROMO_EMPTY_CODE)
        if self.is_busy:
            raise PromotionBusy()
        if self.cart.applied_promotion is not None:
            raise PromotionAlreadyApplied()
        if self.cart.is_empty:
            raise InvalidPromotion(ERROR_PROMO_EMPTY_CART)
        if self.resolver is None:
            raise PromotionUnavailable()

        generation = self._generation
        task = asyncio.ensure_future(self.resolver.validate(code, self.totals().subtotal))
        self._promo_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._generation != generation:
                raise PromotionSuperseded()
            raise
        except Exception as e:
            logger.error(f"Promotion resolver failed: {type(e).__name__}: {e}", exc_info=True)
            result = PromoValidationResult.failure(PromoErrorCode.UNAVAILABLE)
        finally:
            if self._promo_task is task:
                self._promo_task = None

        # Cart was cleared or the promotion removed while we were waiting
        if self._generation != generation:
            raise PromotionSuperseded()

        return result.to_promotion()

    def _drop_promotion(self) -> None:
        self.cart.applied_promotion = None
        self._generation += 1
        if self._promo_task is not None and not self._promo_task.done():
            self._promo_task.cancel()
        self._promo_task = None

    def _commit(self) -> CartTotals:
        """Recompute totals and write through to the store."""
        if self.cart.is_empty and (self.cart.applied_promotion is not None or self.is_busy):
            self._drop_promotion()
        self.cart.touch()
        try:
            self.store.save(self.cart)
        except PersistenceFailure as e:
            logger.error(f"Failed to persist cart ({self.store.describe()}): {e.message}")
        return self.totals()

    def _notify(self, level: str, message: str) -> None:
        send_notification(self.notifier, level, message)
