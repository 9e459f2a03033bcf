"""
Redis Client

Provides a singleton Upstash Redis client (sync REST client) used as the
cart and wishlist backing store, plus key prefixes and TTLs.
"""

from typing import Optional

from upstash_redis import Redis

from storefront.config import UPSTASH_REDIS_REST_URL, UPSTASH_REDIS_REST_TOKEN


_redis_client: Optional[Redis] = None


def get_redis() -> Redis:
    """
    Get Upstash Redis client (singleton).

    Uses the standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN

    The sync client keeps cart saves synchronous with the mutation
    that triggered them.
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key prefixes for different data types."""

    CART = "cart:"  # cart:{session_id}
    WISHLIST = "wishlist:"  # wishlist:{session_id}

    @staticmethod
    def cart_key(session_id: str) -> str:
        return f"{RedisKeys.CART}{session_id}"

    @staticmethod
    def wishlist_key(session_id: str) -> str:
        return f"{RedisKeys.WISHLIST}{session_id}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = 86400  # 24 hours
    WISHLIST = 2592000  # 30 days
