"""
Balance aggregation across a user's linked addresses.

Each address is queried independently; a failed query is logged and counts as
zero so one bad address (or a flaky RPC node) never hides the rest of a
user's holdings.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from services.core.constants import DEFAULT_ADDRESS_CONCURRENCY_LIMIT, DEFAULT_ASSET_DECIMALS
from services.core.exceptions import LedgerQueryError
from services.core.logging import get_logger
from services.core.utils.decimal_utils import from_base_units
from services.interfaces.collaborators import LedgerClientProtocol

logger = get_logger(__name__)


@dataclass(frozen=True)
class AddressBalance:
    """Balance of one address in human units."""

    address: str
    balance: Decimal
    ok: bool = True
    error: str | None = None


class BalanceAggregator:
    """
    Sums holdings of one asset across addresses.

    Usage:
        aggregator = BalanceAggregator(ledger, asset_id=config.asset_type, decimals=9)
        total = await aggregator.total_balance(user.linked_addresses)
    """

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        asset_id: str,
        decimals: int = DEFAULT_ASSET_DECIMALS,
        concurrency_limit: int = DEFAULT_ADDRESS_CONCURRENCY_LIMIT,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.ledger = ledger
        self.asset_id = asset_id
        self.decimals = decimals
        self.concurrency_limit = concurrency_limit

    async def _address_balance(self, address: str, semaphore: asyncio.Semaphore) -> AddressBalance:
        async with semaphore:
            try:
                holdings = await self.ledger.get_holdings(address, self.asset_id)
            except LedgerQueryError as e:
                logger.error(f"Error getting token balance for {address}: {e}")
                return AddressBalance(address=address, balance=Decimal(0), ok=False, error=str(e))
            except Exception as e:
                logger.error(
                    f"Unexpected error getting token balance for {address}: {e}", exc_info=True
                )
                return AddressBalance(address=address, balance=Decimal(0), ok=False, error=str(e))

        raw_total = sum(holding.amount for holding in holdings)
        balance = from_base_units(raw_total, self.decimals)
        logger.debug(f"Address {address}: {balance}")
        return AddressBalance(address=address, balance=balance)

    async def address_balances(self, addresses: Iterable[str]) -> list[AddressBalance]:
        """
        Query every address, at most ``concurrency_limit`` at a time.

        Returns one entry per distinct address, in sorted address order.
        """
        unique = sorted(set(addresses))
        if not unique:
            return []

        # Created per call: the semaphore must belong to the running loop
        semaphore = asyncio.Semaphore(self.concurrency_limit)
        return list(
            await asyncio.gather(*(self._address_balance(a, semaphore) for a in unique))
        )

    async def total_balance(self, addresses: Iterable[str]) -> Decimal:
        """
        Total holdings across ``addresses`` in human units.

        Returns 0 for an empty address set or when every query fails.
        """
        balances = await self.address_balances(addresses)
        failed = [b.address for b in balances if not b.ok]
        if failed:
            logger.warning(
                f"{len(failed)}/{len(balances)} address queries failed and count as 0"
            )
        return sum((b.balance for b in balances), Decimal(0))
