"""Cart package: models, pricing, promotions, storage, and service facade."""
from .models import Cart, LineItem, Product, Promotion, PromotionType, ShippingMethod
from .pricing import CartTotals, calculate_totals
from .promotions import (
    HttpPromotionResolver,
    PromotionResolver,
    PromotionRule,
    PromoValidationResult,
    RulesPromotionResolver,
)
from .storage import CartStore, JsonFileCartStore, MemoryCartStore, RedisCartStore
from .notifications import LogNotificationSink, NotificationSink, RecordingNotificationSink
from .service import CartService

__all__ = [
    "Cart",
    "LineItem",
    "Product",
    "Promotion",
    "PromotionType",
    "ShippingMethod",
    "CartTotals",
    "calculate_totals",
    "PromotionResolver",
    "PromotionRule",
    "PromoValidationResult",
    "RulesPromotionResolver",
    "HttpPromotionResolver",
    "CartStore",
    "MemoryCartStore",
    "JsonFileCartStore",
    "RedisCartStore",
    "NotificationSink",
    "LogNotificationSink",
    "RecordingNotificationSink",
    "CartService",
]
