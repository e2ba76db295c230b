"""Decimal conversion utilities for balances and thresholds.

Balances are kept as Decimal end to end: raw ledger amounts are integers in
the asset's smallest unit and thresholds come from settings as strings.
"""

from __future__ import annotations

from decimal import Decimal

__all__ = ["to_decimal", "from_base_units"]


def to_decimal(value: object | None) -> Decimal | None:
    """
    Safely convert a numeric value to Decimal via string representation.

    Args:
        value: Numeric value (float, int, str, Decimal) or None

    Returns:
        Decimal representation of the value, or None if input is None

    Examples:
        >>> to_decimal(1.23)
        Decimal('1.23')
        >>> to_decimal("100")
        Decimal('100')
    """
    if value is None:
        return None
    return Decimal(str(value))


def from_base_units(amount: int, decimals: int) -> Decimal:
    """
    Convert an integer amount in the smallest unit to human units.

    Examples:
        >>> from_base_units(1_500_000_000, 9)
        Decimal('1.500000000')
    """
    return Decimal(int(amount)).scaleb(-decimals)
