"""
Currency display helpers.

Cart amounts are stored in KES. Other currencies are presentation only:
amounts are converted at a configured rate right before formatting.
"""
from decimal import Decimal
from typing import Dict, Optional

from storefront.config import EUR_TO_KES_RATE, GBP_TO_KES_RATE, STORE_CURRENCY, USD_TO_KES_RATE
from storefront.services.money import Number, to_decimal, divide, round_money, format_money

CURRENCY_SYMBOLS: Dict[str, str] = {
    "KES": "KSh",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

# Currencies displayed without minor units
INTEGER_CURRENCIES: frozenset = frozenset()


def get_exchange_rates() -> Dict[str, Decimal]:
    """KES per unit of each display currency that has a configured rate."""
    rates = {
        STORE_CURRENCY: Decimal("1"),
        "USD": USD_TO_KES_RATE,
        "EUR": EUR_TO_KES_RATE,
        "GBP": GBP_TO_KES_RATE,
    }
    return {code: rate for code, rate in rates.items() if rate > 0}


def convert_from_kes(amount: Number, currency: str, rate: Optional[Number] = None) -> Decimal:
    """
    Convert a KES amount into a display currency.

    Args:
        amount: Amount in KES
        currency: Target currency code
        rate: KES per unit of target currency (defaults to the configured rate)

    Raises:
        ValueError: no rate is configured for the currency
    """
    currency = (currency or STORE_CURRENCY).upper()
    if rate is None:
        rate = get_exchange_rates().get(currency)
        if rate is None:
            raise ValueError(f"No exchange rate configured for {currency}")
    rate = to_decimal(rate)
    if rate <= 0:
        raise ValueError(f"Exchange rate for {currency} must be positive")
    return round_money(divide(to_decimal(amount), rate))


def display_amount(amount: Number, currency: str = STORE_CURRENCY) -> str:
    """Convert then format an amount for UI display."""
    currency = (currency or STORE_CURRENCY).upper()
    return format_money(convert_from_kes(amount, currency), currency)
