"""
Balance aggregation across linked wallet addresses.
"""

from services.balances.aggregator import AddressBalance, BalanceAggregator

__all__ = ["AddressBalance", "BalanceAggregator"]
