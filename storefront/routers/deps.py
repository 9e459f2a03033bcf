"""
Shared Dependencies for Routers

Lazy-loaded singletons and per-session cart services.
"""

from collections import OrderedDict
from typing import Optional

from fastapi import Header, HTTPException

from storefront.cart import (
    CartService,
    CartStore,
    HttpPromotionResolver,
    JsonFileCartStore,
    MemoryCartStore,
    PromotionResolver,
    RecordingNotificationSink,
    RedisCartStore,
    RulesPromotionResolver,
)
from storefront.config import (
    CART_SESSION_CACHE_SIZE,
    CART_STORAGE_DIR,
    PROMOTIONS_API_URL,
    PROMOTIONS_RULES_FILE,
    UPSTASH_REDIS_REST_TOKEN,
    UPSTASH_REDIS_REST_URL,
)
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class SessionCache(OrderedDict):
    """Dict that drops its least recently written entries beyond max_size."""

    def __init__(self, max_size: int):
        super().__init__()
        self.max_size = max_size

    def __setitem__(self, key, value):
        super().__setitem__(key, value)
        self.move_to_end(key)
        while len(self) > self.max_size:
            evicted, _ = self.popitem(last=False)
            logger.debug(f"Evicted session {sanitize_id_for_logging(evicted)} from cache")


# ==================== LAZY SINGLETONS ====================

_promotion_resolver: Optional[PromotionResolver] = None
_cart_services = SessionCache(CART_SESSION_CACHE_SIZE)
# Backing dict for MemoryCartStore when neither Redis nor a storage dir is configured
_memory_backend = SessionCache(CART_SESSION_CACHE_SIZE)


def get_promotion_resolver() -> PromotionResolver:
    """
    Get or create the promotion resolver.

    Remote service if PROMOTIONS_API_URL is set, else rules from
    PROMOTIONS_RULES_FILE. With neither, every code is rejected.
    """
    global _promotion_resolver
    if _promotion_resolver is None:
        if PROMOTIONS_API_URL:
            _promotion_resolver = HttpPromotionResolver(PROMOTIONS_API_URL)
        elif PROMOTIONS_RULES_FILE:
            _promotion_resolver = RulesPromotionResolver.from_file(PROMOTIONS_RULES_FILE)
        else:
            logger.warning("No promotion source configured, all promo codes will be rejected")
            _promotion_resolver = RulesPromotionResolver()
    return _promotion_resolver


def set_promotion_resolver(resolver: Optional[PromotionResolver]) -> None:
    """Override the resolver (tests, local rules tables)."""
    global _promotion_resolver
    _promotion_resolver = resolver


def build_cart_store(session_id: str) -> CartStore:
    """Pick the storage backend from configuration: Redis, file, then memory."""
    if UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN:
        return RedisCartStore(session_id)
    if CART_STORAGE_DIR:
        return JsonFileCartStore(CART_STORAGE_DIR, session_id)
    return MemoryCartStore(session_id, _memory_backend)


def get_session_id(x_session_id: str = Header(default="")) -> str:
    session_id = x_session_id.strip()
    if not session_id:
        raise HTTPException(status_code=400, detail="X-Session-Id header is required")
    return session_id


def get_cart_service_for(session_id: str) -> CartService:
    """
    Get the session's cart service.

    Cached services keep the in-flight promotion guard across requests but
    re-read the stored cart on every call, so the store stays the source
    of truth when several workers share it.
    """
    service = _cart_services.get(session_id)
    if service is None:
        service = CartService(
            store=build_cart_store(session_id),
            resolver=get_promotion_resolver(),
            notifier=RecordingNotificationSink(),
        )
    else:
        service.reload()
    _cart_services[session_id] = service
    return service


def reset_cart_services() -> None:
    """Forget all in-process sessions and stored memory carts."""
    _cart_services.clear()
    _memory_backend.clear()
