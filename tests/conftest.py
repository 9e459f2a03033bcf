"""Pytest configuration and fixtures"""
import os
from decimal import Decimal
from unittest.mock import Mock

import pytest

# Keep the API on in-memory storage and local promotion rules
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)
os.environ.pop("CART_STORAGE_DIR", None)
os.environ.pop("PROMOTIONS_API_URL", None)
os.environ.pop("PROMOTIONS_RULES_FILE", None)

from storefront.cart import (  # noqa: E402
    CartService,
    MemoryCartStore,
    Product,
    PromotionRule,
    PromotionType,
    RulesPromotionResolver,
)
from storefront.config import PricingConfig  # noqa: E402


@pytest.fixture
def pricing_config():
    """Pricing policy observed in the storefront (KES)."""
    return PricingConfig(
        tax_rate=Decimal("0.16"),
        free_shipping_threshold=Decimal("6000"),
        standard_rate=Decimal("300"),
        express_rate=Decimal("500"),
        next_day_rate=Decimal("1500"),
    )


@pytest.fixture
def sample_product():
    """Sample catalog snapshot"""
    return Product(
        id="p1",
        name="Linen Shirt",
        price=Decimal("1000"),
        image="https://cdn.example.com/p1.jpg",
        stock=10,
    )


@pytest.fixture
def discounted_product():
    return Product(
        id="p2",
        name="Canvas Sneakers",
        price=Decimal("2500"),
        discount_price=Decimal("2000"),
        stock=3,
    )


@pytest.fixture
def promo_rules():
    return [
        PromotionRule(code="SAVE10", type=PromotionType.PERCENTAGE, value=Decimal("10")),
        PromotionRule(code="FLAT500", type=PromotionType.FIXED, value=Decimal("500")),
        PromotionRule(code="BIG5000", type=PromotionType.FIXED, value=Decimal("5000")),
        PromotionRule(
            code="MIN3000",
            type=PromotionType.PERCENTAGE,
            value=Decimal("5"),
            min_subtotal=Decimal("3000"),
        ),
    ]


@pytest.fixture
def resolver(promo_rules):
    return RulesPromotionResolver(promo_rules)


@pytest.fixture
def store():
    return MemoryCartStore("session-1")


@pytest.fixture
def notifier():
    """Mock notification sink"""
    return Mock()


@pytest.fixture
def cart_service(store, resolver, notifier, pricing_config):
    return CartService(store=store, resolver=resolver, notifier=notifier, config=pricing_config)
