"""Promotion resolvers.

Validate a promo code against the current subtotal. Resolvers never raise
for a rejected code: they return a PromoValidationResult and the cart
service turns failures into typed errors.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, Optional

import httpx
from pydantic import BaseModel

from storefront.config import PROMOTIONS_API_URL, PROMOTIONS_API_TIMEOUT
from storefront.errors import (
    InvalidPromotion,
    MinimumNotMet,
    PromotionError,
    PromotionExpired,
    PromotionUnavailable,
    PromotionUsageLimitReached,
    ERROR_PROMO_EXPIRED,
    ERROR_PROMO_INVALID,
    ERROR_PROMO_MINIMUM,
    ERROR_PROMO_UNAVAILABLE,
    ERROR_PROMO_USAGE_LIMIT,
)
from storefront.logging import get_logger, sanitize_string_for_logging
from storefront.services.money import to_decimal
from .models import Promotion, PromotionType
from .pricing import calculate_discount

logger = get_logger(__name__)


# ============================================
# Models
# ============================================

class PromoErrorCode:
    """Failure reasons reported by resolvers."""
    INVALID = "invalid"
    EXPIRED = "expired"
    MINIMUM_NOT_MET = "minimum_not_met"
    USAGE_LIMIT = "usage_limit"
    UNAVAILABLE = "unavailable"


_ERRORS: Dict[str, type] = {
    PromoErrorCode.INVALID: InvalidPromotion,
    PromoErrorCode.EXPIRED: PromotionExpired,
    PromoErrorCode.MINIMUM_NOT_MET: MinimumNotMet,
    PromoErrorCode.USAGE_LIMIT: PromotionUsageLimitReached,
    PromoErrorCode.UNAVAILABLE: PromotionUnavailable,
}

_DEFAULT_MESSAGES: Dict[str, str] = {
    PromoErrorCode.INVALID: ERROR_PROMO_INVALID,
    PromoErrorCode.EXPIRED: ERROR_PROMO_EXPIRED,
    PromoErrorCode.MINIMUM_NOT_MET: ERROR_PROMO_MINIMUM,
    PromoErrorCode.USAGE_LIMIT: ERROR_PROMO_USAGE_LIMIT,
    PromoErrorCode.UNAVAILABLE: ERROR_PROMO_UNAVAILABLE,
}


class PromoValidationResult(BaseModel):
    """Result of promo code validation."""
    valid: bool
    code: Optional[str] = None
    type: Optional[PromotionType] = None
    value: Optional[Decimal] = None
    discount_amount: Decimal = Decimal("0")
    error: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, code: str, promo_type: PromotionType, value, subtotal) -> "PromoValidationResult":
        """Successful result with discount_amount computed against subtotal."""
        promotion = Promotion(code=code, type=promo_type, value=value)
        return cls(
            valid=True,
            code=promotion.code,
            type=promotion.type,
            value=promotion.value,
            discount_amount=calculate_discount(to_decimal(subtotal), promotion),
        )

    @classmethod
    def failure(cls, error: str, message: Optional[str] = None) -> "PromoValidationResult":
        return cls(
            valid=False,
            error=error,
            error_message=message or _DEFAULT_MESSAGES.get(error, ERROR_PROMO_INVALID),
        )

    def to_promotion(self) -> Promotion:
        """Promotion snapshot for a successful result; raises the mapped error otherwise."""
        if not self.valid:
            raise self.to_error()
        return Promotion(
            code=self.code or "",
            type=self.type,
            value=self.value,
            discount_amount=self.discount_amount,
        )

    def to_error(self) -> PromotionError:
        error_cls = _ERRORS.get(self.error or PromoErrorCode.INVALID, InvalidPromotion)
        return error_cls(self.error_message)


class PromotionRule(BaseModel):
    """Promo code definition in the local rules table."""
    code: str
    type: PromotionType
    value: Decimal
    min_subtotal: Decimal = Decimal("0")
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    is_active: bool = True


# ============================================
# Resolvers
# ============================================

class PromotionResolver(ABC):
    """Collaborator that validates promo codes."""

    @abstractmethod
    async def validate(self, code: str, subtotal: Decimal) -> PromoValidationResult:
        """Validate code against subtotal. Must not raise for rejected codes."""


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RulesPromotionResolver(PromotionResolver):
    """Validates codes against an in-process rules table."""

    def __init__(self, rules: Iterable[PromotionRule] = ()):
        self._rules: Dict[str, PromotionRule] = {}
        for rule in rules:
            self.add_rule(rule)

    @classmethod
    def from_file(cls, path: str | Path) -> "RulesPromotionResolver":
        """
        Load rules from a JSON file holding a list of rule objects.

        Raises:
            OSError, ValueError: unreadable file or invalid rule data
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"Promotion rules file must contain a list, got {type(data).__name__}")
        rules = [PromotionRule.model_validate(item) for item in data]
        logger.info(f"Loaded {len(rules)} promotion rules from {path}")
        return cls(rules)

    def add_rule(self, rule: PromotionRule) -> None:
        self._rules[rule.code.strip().upper()] = rule

    def get_rule(self, code: str) -> Optional[PromotionRule]:
        return self._rules.get((code or "").strip().upper())

    def record_use(self, code: str) -> bool:
        """Increment usage count for a promo code (call after order placement)."""
        rule = self.get_rule(code)
        if rule is None:
            return False
        rule.current_uses += 1
        logger.info(f"Used promo code {sanitize_string_for_logging(rule.code)}, new count: {rule.current_uses}")
        return True

    async def validate(self, code: str, subtotal: Decimal) -> PromoValidationResult:
        rule = self.get_rule(code)
        if rule is None or not rule.is_active:
            return PromoValidationResult.failure(PromoErrorCode.INVALID, "Promo code not found or inactive")

        now = datetime.now(timezone.utc)
        if rule.valid_from and now < _aware(rule.valid_from):
            return PromoValidationResult.failure(PromoErrorCode.INVALID, "Promo code is not yet active")
        if rule.valid_until and now > _aware(rule.valid_until):
            return PromoValidationResult.failure(PromoErrorCode.EXPIRED)
        if rule.max_uses and rule.current_uses >= rule.max_uses:
            return PromoValidationResult.failure(PromoErrorCode.USAGE_LIMIT)

        subtotal = to_decimal(subtotal)
        if subtotal < rule.min_subtotal:
            return PromoValidationResult.failure(
                PromoErrorCode.MINIMUM_NOT_MET,
                f"Minimum order of {rule.min_subtotal} required for this promo code",
            )

        return PromoValidationResult.success(rule.code, rule.type, rule.value, subtotal)


class HttpPromotionResolver(PromotionResolver):
    """
    Validates codes through the promotions API.

    POST {base_url}/promotions/validate {"code": ..., "subtotal": ...}
    2xx: {"code", "type", "value"}; 4xx: {"error", "message"}.
    Transport errors and 5xx are reported as unavailable.
    """

    def __init__(
        self,
        base_url: str = PROMOTIONS_API_URL,
        timeout: float = PROMOTIONS_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("PROMOTIONS_API_URL must be set")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def validate(self, code: str, subtotal: Decimal) -> PromoValidationResult:
        payload = {"code": code.strip().upper(), "subtotal": str(to_decimal(subtotal))}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/promotions/validate", json=payload)
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Promotion service request failed: {type(e).__name__}: {e}")
            return PromoValidationResult.failure(PromoErrorCode.UNAVAILABLE)

        if response.status_code >= 500:
            logger.warning(f"Promotion service returned {response.status_code}")
            return PromoValidationResult.failure(PromoErrorCode.UNAVAILABLE)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Promotion service returned a non-JSON body")
            return PromoValidationResult.failure(PromoErrorCode.UNAVAILABLE)

        if response.status_code >= 400:
            error = data.get("error", PromoErrorCode.INVALID)
            if error not in _ERRORS:
                error = PromoErrorCode.INVALID
            return PromoValidationResult.failure(error, data.get("message"))

        try:
            return PromoValidationResult.success(
                data.get("code", code),
                PromotionType(data["type"]),
                data["value"],
                subtotal,
            )
        except (KeyError, ValueError, PromotionError) as e:
            logger.warning(f"Malformed promotion payload: {type(e).__name__}: {e}")
            return PromoValidationResult.failure(PromoErrorCode.INVALID)
