"""
Money helpers.

All payouts are rounded exactly once, at the end of the calculation.
"""

from decimal import ROUND_HALF_UP, Decimal

from mlm_rewards.config.constants import PERCENT_BASE
from mlm_rewards.config.settings import settings


def round_currency(amount: Decimal, quantum: Decimal | None = None) -> Decimal:
    """
    Round amount half-up to the currency quantum.

    Args:
        amount: Unrounded amount
        quantum: Smallest unit (defaults to settings.currency_quantum)

    Returns:
        Rounded amount
    """
    return amount.quantize(quantum or settings.currency_quantum, rounding=ROUND_HALF_UP)


def percentage_of(base: Decimal, percentage: Decimal) -> Decimal:
    """Unrounded ``base * percentage / 100``."""
    return base * percentage / PERCENT_BASE


def to_decimal(value: object) -> Decimal:
    """Coerce a DB aggregate (None, int, float, str, Decimal) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
