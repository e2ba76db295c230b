"""Balance -> tier resolution."""

from collections.abc import Iterable
from decimal import Decimal

from services.tiers.table import TierDefinition


def resolve(balance: Decimal, tiers: Iterable[TierDefinition]) -> TierDefinition | None:
    """
    Return the highest tier whose threshold the balance meets.

    Tiers are evaluated from the highest ``min_balance`` downward; the boundary
    is inclusive (a balance equal to the threshold qualifies).

    Args:
        balance: Aggregated balance in human units
        tiers: Tier definitions, in any order

    Returns:
        The matching tier, or None if the balance is below every threshold
    """
    for tier in sorted(tiers, key=lambda t: t.min_balance, reverse=True):
        if balance >= tier.min_balance:
            return tier
    return None
