"""Wishlist Domain Service.

Session wishlist of product IDs, persisted like the cart (write-through,
best effort). Products can be moved from the wishlist into the cart.
"""

import json
from typing import Any, Mapping, Optional, Union

from storefront.cart.models import Product
from storefront.cart.notifications import (
    LogNotificationSink,
    NotificationLevel,
    NotificationSink,
    send_notification,
)
from storefront.db import get_redis, RedisKeys, TTL
from storefront.errors import PersistenceFailure
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

ProductLike = Union[Product, Mapping[str, Any]]


def _product_id(product: ProductLike) -> str:
    if isinstance(product, Product):
        return product.id
    return str(product.get("id") or product.get("_id") or product.get("product_id") or "")


class WishlistStore:
    """Stores the wishlist as a JSON list of product IDs."""

    def __init__(self, session_id: str = "default", backend: Optional[dict] = None):
        self.session_id = session_id
        self.backend = backend if backend is not None else {}

    def load(self) -> list[str]:
        try:
            raw = self._read()
            if not raw:
                return []
            data = json.loads(raw)
        except Exception as e:
            logger.warning(f"Error loading wishlist {sanitize_id_for_logging(self.session_id)}: {e}")
            return []
        if not isinstance(data, list):
            return []
        return [str(product_id) for product_id in data if product_id]

    def save(self, product_ids: list[str]) -> None:
        try:
            self._write(json.dumps(product_ids))
        except Exception as e:
            raise PersistenceFailure(f"Wishlist could not be saved: {type(e).__name__}: {e}") from e

    def _read(self) -> Any:
        return self.backend.get(self.session_id)

    def _write(self, payload: str) -> None:
        self.backend[self.session_id] = payload


class RedisWishlistStore(WishlistStore):
    """Upstash Redis wishlist store (wishlist:{session_id}, 30-day TTL)."""

    def __init__(self, session_id: str, redis=None):
        super().__init__(session_id)
        self._redis = redis

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def _read(self) -> Any:
        return self.redis.get(RedisKeys.wishlist_key(self.session_id))

    def _write(self, payload: str) -> None:
        self.redis.set(RedisKeys.wishlist_key(self.session_id), payload, ex=TTL.WISHLIST)


class WishlistService:
    """Wishlist operations for one session."""

    def __init__(self, store: Optional[WishlistStore] = None, notifier: Optional[NotificationSink] = None) -> None:
        self.store = store or WishlistStore()
        self.notifier = notifier or LogNotificationSink()
        self.product_ids: list[str] = self.store.load()

    @property
    def count(self) -> int:
        return len(self.product_ids)

    def contains(self, product_id: str) -> bool:
        return product_id in self.product_ids

    def add(self, product: ProductLike) -> bool:
        """Add product to wishlist. Returns False if invalid or already present."""
        product_id = _product_id(product)
        if not product_id:
            send_notification(self.notifier, NotificationLevel.ERROR, "Invalid product")
            return False
        if self.contains(product_id):
            send_notification(self.notifier, NotificationLevel.INFO, "Product already in wishlist")
            return False

        self.product_ids.append(product_id)
        self._persist()
        send_notification(self.notifier, NotificationLevel.SUCCESS, "Added to wishlist")
        return True

    def remove(self, product_id: str) -> bool:
        if not self.contains(product_id):
            return False
        self.product_ids = [pid for pid in self.product_ids if pid != product_id]
        self._persist()
        send_notification(self.notifier, NotificationLevel.SUCCESS, "Removed from wishlist")
        return True

    def toggle(self, product: ProductLike) -> bool:
        """Add if absent, remove if present. Returns True when now in wishlist."""
        product_id = _product_id(product)
        if self.contains(product_id):
            self.remove(product_id)
            return False
        return self.add(product)

    def clear(self) -> None:
        self.product_ids = []
        self._persist()
        send_notification(self.notifier, NotificationLevel.SUCCESS, "Wishlist cleared")

    def move_to_cart(self, product: ProductLike, cart_service) -> bool:
        """Add one unit to the cart, then drop the product from the wishlist."""
        product_id = _product_id(product)
        cart_service.add_item(product, 1)
        if self.contains(product_id):
            self.remove(product_id)
        return True

    def _persist(self) -> None:
        try:
            self.store.save(self.product_ids)
        except PersistenceFailure as e:
            logger.error(f"Failed to persist wishlist: {e.message}")
