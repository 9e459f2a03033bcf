"""
Pricing Calculator

Pure functions over (items, promotion, shipping method, config).
Every call recomputes from scratch; nothing here reads or writes
stored totals.

Calculation order:
1. subtotal: effective unit price (discounted if present) x quantity
2. discount: cart-level promotion, capped at the subtotal
3. shipping: method rate (standard waived at the free-shipping threshold)
   plus per-item flat rates
4. tax: on (subtotal - discount)
5. total: clamped at zero
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from storefront.config import PricingConfig, get_pricing_config
from storefront.services.money import ZERO, round_money, multiply, percent, subtract, to_float
from .models import Cart, LineItem, Promotion, PromotionType, ShippingMethod


@dataclass(frozen=True)
class CartTotals:
    """Derived cart values. Always produced by calculate_totals()."""
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    total_quantity: int

    @property
    def discounted_subtotal(self) -> Decimal:
        return subtract(self.subtotal, self.discount)

    def to_dict(self) -> dict:
        return {
            "subtotal": to_float(self.subtotal),
            "discount": to_float(self.discount),
            "shipping_cost": to_float(self.shipping_cost),
            "tax": to_float(self.tax),
            "total": to_float(self.total),
            "total_quantity": self.total_quantity,
        }


def calculate_subtotal(items: Iterable[LineItem]) -> Decimal:
    return round_money(sum((item.line_total for item in items), ZERO))


def calculate_discount(subtotal: Decimal, promotion: Optional[Promotion]) -> Decimal:
    """
    Discount for a promotion against the given subtotal.

    Uses the promotion's type/value, never its frozen discount_amount,
    so a fixed promo is re-capped when the subtotal drops.
    """
    if promotion is None or subtotal <= 0:
        return ZERO
    if promotion.type == PromotionType.PERCENTAGE:
        discount = round_money(percent(subtotal, promotion.value))
    else:
        discount = round_money(promotion.value)
    return min(discount, subtotal)


def method_rate(method: ShippingMethod, config: PricingConfig) -> Decimal:
    rates = {
        ShippingMethod.STANDARD: config.standard_rate,
        ShippingMethod.EXPRESS: config.express_rate,
        ShippingMethod.NEXT_DAY: config.next_day_rate,
    }
    return rates[ShippingMethod.parse(method)]


def item_shipping(item: LineItem) -> Decimal:
    """Per-item shipping charge (flat-rate items only)."""
    if not item.ships or item.flat_shipping_rate <= 0:
        return ZERO
    return round_money(multiply(item.flat_shipping_rate, item.quantity))


def calculate_shipping(
    items: Sequence[LineItem],
    method: ShippingMethod,
    discounted_subtotal: Decimal,
    config: PricingConfig,
) -> Decimal:
    """
    Shipping cost for the cart.

    Lines that need no shipping or ship free are ignored. Flat-rate lines
    pay their own rate instead of the method rate. Only standard shipping
    is waived at the free-shipping threshold; express and next-day never are.
    """
    shipping_lines = [item for item in items if item.ships]
    if not shipping_lines:
        return ZERO

    flat = sum((item_shipping(item) for item in shipping_lines), ZERO)
    needs_method_rate = any(item.flat_shipping_rate <= 0 for item in shipping_lines)

    base = ZERO
    if needs_method_rate:
        base = method_rate(method, config)
        if method == ShippingMethod.STANDARD and discounted_subtotal >= config.free_shipping_threshold:
            base = ZERO

    return round_money(base + flat)


def calculate_tax(taxable: Decimal, config: PricingConfig) -> Decimal:
    if taxable <= 0:
        return ZERO
    return round_money(multiply(taxable, config.tax_rate))


def calculate_totals(cart: Cart, config: Optional[PricingConfig] = None) -> CartTotals:
    """Recompute every derived value of the cart."""
    config = config or get_pricing_config()
    subtotal = calculate_subtotal(cart.items)
    discount = calculate_discount(subtotal, cart.applied_promotion)
    taxable = subtract(subtotal, discount)
    shipping = calculate_shipping(cart.items, cart.shipping_method, taxable, config)
    tax = calculate_tax(taxable, config)
    total = max(ZERO, round_money(taxable + shipping + tax))

    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        shipping_cost=shipping,
        tax=tax,
        total=total,
        total_quantity=cart.total_quantity,
    )


def amount_to_free_shipping(totals: CartTotals, config: Optional[PricingConfig] = None) -> Decimal:
    """How much more (after discount) qualifies the cart for free standard shipping."""
    config = config or get_pricing_config()
    remaining = subtract(config.free_shipping_threshold, totals.discounted_subtotal)
    return round_money(remaining) if remaining > 0 else ZERO
