"""
Money helpers.
"""

from decimal import ROUND_HALF_UP, Decimal

from affiliate_engine.config.settings import settings


def quantize_money(amount: Decimal, places: int | None = None) -> Decimal:
    """
    Round an amount to the configured number of decimal places.

    Args:
        amount: Raw amount
        places: Decimal places (default: settings.money_decimal_places)

    Returns:
        Amount rounded half-up
    """
    if places is None:
        places = settings.money_decimal_places
    exponent = Decimal(1).scaleb(-places)
    return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Apply a percentage (e.g. 12.5 for 12.5%) and round the result."""
    return quantize_money(Decimal(amount) * Decimal(percentage) / Decimal("100"))
