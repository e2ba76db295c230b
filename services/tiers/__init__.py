"""
Membership tiers: the ordered tier table and balance -> tier resolution.
"""

from services.tiers.resolver import resolve
from services.tiers.table import TierDefinition, TierTable, get_tier_table

__all__ = ["TierDefinition", "TierTable", "get_tier_table", "resolve"]
