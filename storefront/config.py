"""
Storefront configuration.

Pricing policy, storage and promotion-service settings read from the
environment. Amounts are in the store currency (KES).
"""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from storefront.logging import get_logger

logger = get_logger(__name__)


def _env_decimal(name: str, default: str) -> Decimal:
    """Read a decimal env var, falling back to the default on bad input."""
    raw = os.environ.get(name, default)
    try:
        value = Decimal(raw)
    except (InvalidOperation, ValueError):
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return Decimal(default)
    if value < 0:
        logger.warning(f"Negative value for {name}: {raw!r}, using default {default}")
        return Decimal(default)
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default
    if value < 1:
        logger.warning(f"Non-positive value for {name}: {raw!r}, using default {default}")
        return default
    return value


# Currency
STORE_CURRENCY = os.environ.get("STORE_CURRENCY", "KES")
USD_TO_KES_RATE = _env_decimal("USD_TO_KES_RATE", "120")
# Optional display rates, 0 = not offered
EUR_TO_KES_RATE = _env_decimal("EUR_TO_KES_RATE", "0")
GBP_TO_KES_RATE = _env_decimal("GBP_TO_KES_RATE", "0")

# Storage
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
CART_STORAGE_DIR = os.environ.get("CART_STORAGE_DIR", "")
# Max sessions whose cart services stay cached in one process
CART_SESSION_CACHE_SIZE = _env_int("CART_SESSION_CACHE_SIZE", 1000)

# Promotion service
PROMOTIONS_API_URL = os.environ.get("PROMOTIONS_API_URL", "")
PROMOTIONS_API_TIMEOUT = _env_float("PROMOTIONS_API_TIMEOUT", 5.0)
# Local rules table (JSON list) used when no promotions API is configured
PROMOTIONS_RULES_FILE = os.environ.get("PROMOTIONS_RULES_FILE", "")


@dataclass(frozen=True)
class PricingConfig:
    """Pricing policy used by the calculator."""
    tax_rate: Decimal = Decimal("0.16")
    free_shipping_threshold: Decimal = Decimal("6000")
    standard_rate: Decimal = Decimal("300")
    express_rate: Decimal = Decimal("500")
    next_day_rate: Decimal = Decimal("1500")
    currency: str = "KES"

    @classmethod
    def from_env(cls) -> "PricingConfig":
        """Build pricing config from CART_* environment variables."""
        return cls(
            tax_rate=_env_decimal("CART_TAX_RATE", "0.16"),
            free_shipping_threshold=_env_decimal("CART_FREE_SHIPPING_THRESHOLD", "6000"),
            standard_rate=_env_decimal("CART_STANDARD_SHIPPING_RATE", "300"),
            express_rate=_env_decimal("CART_EXPRESS_SHIPPING_RATE", "500"),
            next_day_rate=_env_decimal("CART_NEXT_DAY_SHIPPING_RATE", "1500"),
            currency=STORE_CURRENCY,
        )


_pricing_config: PricingConfig | None = None


def get_pricing_config() -> PricingConfig:
    """Get PricingConfig singleton (read from env on first use)."""
    global _pricing_config
    if _pricing_config is None:
        _pricing_config = PricingConfig.from_env()
    return _pricing_config
