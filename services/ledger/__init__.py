"""
Ledger access: read-only queries for asset holdings on Sui.
"""

from services.ledger.client import Holding, LedgerConfig, SuiLedgerClient

__all__ = ["Holding", "LedgerConfig", "SuiLedgerClient"]
