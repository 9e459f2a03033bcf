"""Cart persistence backends.

load() never raises: missing or corrupted data yields an empty cart.
save() raises PersistenceFailure; the cart service logs it and keeps
the in-memory cart.
"""
import hashlib
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from storefront.db import get_redis, RedisKeys, TTL
from storefront.errors import PersistenceFailure
from storefront.logging import get_logger, sanitize_id_for_logging
from .models import Cart

logger = get_logger(__name__)

# Errors that mean "stored payload is not a cart"
_DECODE_ERRORS = (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError)


def decode_cart(raw: Any) -> Optional[Cart]:
    """Decode a stored payload (JSON text or dict). None if unusable."""
    if not raw:
        return None
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    return Cart.from_dict(data)


def encode_cart(cart: Cart) -> str:
    return json.dumps(cart.to_dict())


class CartStore(ABC):
    """Key-value snapshot store for a single session's cart."""

    def load(self) -> Cart:
        """Load the stored cart, falling back to an empty cart."""
        try:
            raw = self._read()
        except Exception as e:
            logger.warning(f"Failed to read cart {self.describe()}: {type(e).__name__}: {e}")
            return Cart()
        try:
            cart = decode_cart(raw)
        except _DECODE_ERRORS as e:
            logger.warning(f"Corrupted cart data for {self.describe()}: {e}")
            return Cart()
        except Exception as e:  # model validation errors (CartError and friends)
            logger.warning(f"Invalid cart data for {self.describe()}: {type(e).__name__}: {e}")
            return Cart()
        return cart if cart is not None else Cart()

    def save(self, cart: Cart) -> None:
        """Write the cart snapshot. Raises PersistenceFailure on error."""
        try:
            self._write(encode_cart(cart))
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Cart could not be saved: {type(e).__name__}: {e}") from e

    def describe(self) -> str:
        return type(self).__name__

    @abstractmethod
    def _read(self) -> Any:
        """Return the raw stored payload or None."""

    @abstractmethod
    def _write(self, payload: str) -> None:
        """Store the raw payload."""


class MemoryCartStore(CartStore):
    """Dict-backed store. Several sessions may share one dict."""

    def __init__(self, session_id: str = "default", backend: Optional[Dict[str, str]] = None):
        self.session_id = session_id
        self.backend = backend if backend is not None else {}

    def describe(self) -> str:
        return f"memory:{sanitize_id_for_logging(self.session_id)}"

    def _read(self) -> Any:
        return self.backend.get(self.session_id)

    def _write(self, payload: str) -> None:
        self.backend[self.session_id] = payload


class JsonFileCartStore(CartStore):
    """One JSON file per session under a storage directory."""

    def __init__(self, directory: str | Path, session_id: str = "default"):
        self.directory = Path(directory)
        self.session_id = session_id

    @property
    def path(self) -> Path:
        # Hashed so any session id maps to its own safe filename
        digest = hashlib.sha256(self.session_id.encode("utf-8")).hexdigest()
        return self.directory / f"cart_{digest}.json"

    def describe(self) -> str:
        return f"file:{sanitize_id_for_logging(self.session_id)}"

    def _read(self) -> Any:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _write(self, payload: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)


class RedisCartStore(CartStore):
    """
    Upstash Redis store.

    Features:
    - key cart:{session_id}
    - 24-hour TTL refreshed on every save (abandoned carts expire)
    """

    def __init__(self, session_id: str, redis=None):
        self.session_id = session_id
        self._redis = redis  # Lazy initialization

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    @property
    def key(self) -> str:
        return RedisKeys.cart_key(self.session_id)

    def describe(self) -> str:
        return f"redis:{sanitize_id_for_logging(self.session_id)}"

    def _read(self) -> Any:
        return self.redis.get(self.key)

    def _write(self, payload: str) -> None:
        self.redis.set(self.key, payload, ex=TTL.CART)

    def delete(self) -> None:
        """Drop the stored snapshot."""
        try:
            self.redis.delete(self.key)
        except Exception as e:
            raise PersistenceFailure(f"Cart could not be deleted: {type(e).__name__}: {e}") from e
