"""
Tests for promotion resolvers
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from storefront.cart import HttpPromotionResolver, PromotionRule, PromotionType, RulesPromotionResolver
from storefront.cart.promotions import PromoErrorCode, PromoValidationResult
from storefront.errors import MinimumNotMet, PromotionExpired, PromotionUnavailable


class TestRulesPromotionResolver:

    @pytest.mark.asyncio
    async def test_valid_percentage_code(self, resolver):
        result = await resolver.validate("save10", Decimal("2000"))

        assert result.valid
        assert result.code == "SAVE10"
        assert result.discount_amount == Decimal("200")

    @pytest.mark.asyncio
    async def test_fixed_discount_amount_capped(self, resolver):
        result = await resolver.validate("BIG5000", Decimal("1200"))

        assert result.valid
        assert result.discount_amount == Decimal("1200")

    @pytest.mark.asyncio
    async def test_unknown_code(self, resolver):
        result = await resolver.validate("NOPE", Decimal("2000"))

        assert not result.valid
        assert result.error == PromoErrorCode.INVALID

    @pytest.mark.asyncio
    async def test_inactive_code(self):
        resolver = RulesPromotionResolver([
            PromotionRule(code="OLD", type=PromotionType.FIXED, value=Decimal("100"), is_active=False),
        ])

        result = await resolver.validate("OLD", Decimal("2000"))

        assert result.error == PromoErrorCode.INVALID

    @pytest.mark.asyncio
    async def test_expired_code(self):
        resolver = RulesPromotionResolver([
            PromotionRule(
                code="SUMMER",
                type=PromotionType.PERCENTAGE,
                value=Decimal("20"),
                valid_until=datetime.now(timezone.utc) - timedelta(days=1),
            ),
        ])

        result = await resolver.validate("SUMMER", Decimal("2000"))

        assert result.error == PromoErrorCode.EXPIRED
        with pytest.raises(PromotionExpired):
            result.to_promotion()

    @pytest.mark.asyncio
    async def test_not_yet_active_code(self):
        resolver = RulesPromotionResolver([
            PromotionRule(
                code="SOON",
                type=PromotionType.PERCENTAGE,
                value=Decimal("20"),
                valid_from=datetime.now(timezone.utc) + timedelta(days=1),
            ),
        ])

        result = await resolver.validate("SOON", Decimal("2000"))

        assert result.error == PromoErrorCode.INVALID

    @pytest.mark.asyncio
    async def test_minimum_not_met(self, resolver):
        result = await resolver.validate("MIN3000", Decimal("2999"))

        assert result.error == PromoErrorCode.MINIMUM_NOT_MET
        with pytest.raises(MinimumNotMet):
            result.to_promotion()

    @pytest.mark.asyncio
    async def test_usage_limit(self):
        resolver = RulesPromotionResolver([
            PromotionRule(code="ONCE", type=PromotionType.FIXED, value=Decimal("100"), max_uses=1),
        ])

        assert (await resolver.validate("ONCE", Decimal("500"))).valid
        assert resolver.record_use("once")

        result = await resolver.validate("ONCE", Decimal("500"))
        assert result.error == PromoErrorCode.USAGE_LIMIT


def _resolver(handler) -> HttpPromotionResolver:
    return HttpPromotionResolver("https://promo.example.com/api/", transport=httpx.MockTransport(handler))


class TestHttpPromotionResolver:

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"code": "SAVE10", "type": "percentage", "value": 10})

        result = await _resolver(handler).validate("save10", Decimal("2000"))

        assert seen["url"] == "https://promo.example.com/api/promotions/validate"
        assert seen["body"] == {"code": "SAVE10", "subtotal": "2000"}
        assert result.valid
        assert result.to_promotion().discount_amount == Decimal("200")

    @pytest.mark.asyncio
    async def test_rejection_maps_error(self):
        def handler(request):
            return httpx.Response(422, json={"error": "expired", "message": "Code ended yesterday"})

        result = await _resolver(handler).validate("OLD", Decimal("2000"))

        assert result.error == PromoErrorCode.EXPIRED
        assert result.error_message == "Code ended yesterday"

    @pytest.mark.asyncio
    async def test_unknown_error_is_invalid(self):
        def handler(request):
            return httpx.Response(400, json={"error": "wat"})

        result = await _resolver(handler).validate("X", Decimal("10"))

        assert result.error == PromoErrorCode.INVALID

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        result = await _resolver(handler).validate("SAVE10", Decimal("2000"))

        assert result.error == PromoErrorCode.UNAVAILABLE
        with pytest.raises(PromotionUnavailable):
            result.to_promotion()

    @pytest.mark.asyncio
    async def test_network_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _resolver(handler).validate("SAVE10", Decimal("2000"))

        assert result.error == PromoErrorCode.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_malformed_payload_is_invalid(self):
        def handler(request):
            return httpx.Response(200, json={"code": "SAVE10", "type": "bogus", "value": 10})

        result = await _resolver(handler).validate("SAVE10", Decimal("2000"))

        assert result.error == PromoErrorCode.INVALID

    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            HttpPromotionResolver("")


def test_failure_uses_default_message():
    result = PromoValidationResult.failure(PromoErrorCode.MINIMUM_NOT_MET)

    assert result.error_message == "Order subtotal is below the promo code minimum"


class TestRulesFile:

    @pytest.mark.asyncio
    async def test_load_rules(self, tmp_path):
        path = tmp_path / "promos.json"
        path.write_text(json.dumps([
            {"code": "save10", "type": "percentage", "value": "10"},
            {"code": "MIN3000", "type": "percentage", "value": "5", "min_subtotal": "3000"},
        ]))

        resolver = RulesPromotionResolver.from_file(path)

        assert (await resolver.validate("SAVE10", Decimal("2000"))).discount_amount == Decimal("200")
        assert (await resolver.validate("MIN3000", Decimal("100"))).error == PromoErrorCode.MINIMUM_NOT_MET

    @pytest.mark.parametrize("content", ['{"code": "X"}', '[{"code": "X", "type": "bogus", "value": 1}]', "nope"])
    def test_invalid_rules_file(self, tmp_path, content):
        path = tmp_path / "promos.json"
        path.write_text(content)

        with pytest.raises(ValueError):
            RulesPromotionResolver.from_file(path)
