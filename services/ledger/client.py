"""
Sui ledger client.

Reads coin holdings for an address through the fullnode JSON-RPC API
(``suix_getCoins``), following ``nextCursor`` pagination. Amounts are returned
as raw integers in the asset's smallest unit; conversion to human units is the
caller's job.
"""

from dataclasses import dataclass
from itertools import count

from django.conf import settings

import httpx

from services.core.constants import (
    API_TIMEOUT,
    DEFAULT_ASSET_DECIMALS,
    SUI_MAX_PAGE_LIMIT,
    SUI_MAX_PAGES,
)
from services.core.exceptions import ConfigurationError, LedgerQueryError
from services.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Holding:
    """One coin object held by an address."""

    amount: int
    object_id: str = ""


@dataclass
class LedgerConfig:
    rpc_url: str
    asset_type: str
    asset_decimals: int = DEFAULT_ASSET_DECIMALS
    page_limit: int = SUI_MAX_PAGE_LIMIT


def get_config() -> LedgerConfig:
    cfg = getattr(settings, "LEDGER_CONFIG", {})

    rpc_url = cfg.get("RPC_URL", "")
    asset_type = cfg.get("ASSET_TYPE", "")
    if not rpc_url:
        raise ConfigurationError("LEDGER_CONFIG['RPC_URL'] is not configured")
    if asset_type.count("::") != 2:
        raise ConfigurationError(
            f"LEDGER_CONFIG['ASSET_TYPE'] must look like '<package>::<module>::<name>', "
            f"got '{asset_type}'"
        )

    decimals = int(cfg.get("ASSET_DECIMALS", DEFAULT_ASSET_DECIMALS))
    if decimals < 0:
        raise ConfigurationError("LEDGER_CONFIG['ASSET_DECIMALS'] must not be negative")

    return LedgerConfig(
        rpc_url=rpc_url,
        asset_type=asset_type,
        asset_decimals=decimals,
        page_limit=min(int(cfg.get("PAGE_LIMIT", SUI_MAX_PAGE_LIMIT)), SUI_MAX_PAGE_LIMIT),
    )


class SuiLedgerClient:
    """
    Async JSON-RPC client for Sui fullnodes.

    Usage:
        async with SuiLedgerClient() as ledger:
            holdings = await ledger.get_holdings(address, ledger.config.asset_type)
    """

    def __init__(
        self,
        config: LedgerConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or get_config()
        self._client = http_client
        self._owns_client = http_client is None
        self._request_ids = count(1)

    async def __aenter__(self) -> "SuiLedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=API_TIMEOUT)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _rpc(self, address: str, method: str, params: list) -> dict:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._get_client().post(self.config.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise LedgerQueryError(
                address, f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise LedgerQueryError(address, f"Network error: {e!s}") from e
        except ValueError as e:
            raise LedgerQueryError(address, "Invalid JSON in RPC response") from e

        if body.get("error"):
            error = body["error"]
            raise LedgerQueryError(
                address, f"RPC error {error.get('code')}: {error.get('message')}"
            )
        if "result" not in body:
            raise LedgerQueryError(address, "RPC response has no result")
        return body["result"]

    async def get_holdings(self, address: str, asset_id: str) -> list[Holding]:
        """
        Return every coin object of ``asset_id`` owned by ``address``.

        Raises:
            LedgerQueryError: On transport, HTTP or RPC failure, or malformed data
        """
        holdings: list[Holding] = []
        cursor = None

        for _ in range(SUI_MAX_PAGES):
            page = await self._rpc(
                address,
                "suix_getCoins",
                [address, asset_id, cursor, self.config.page_limit],
            )
            try:
                for coin in page.get("data", []):
                    holdings.append(
                        Holding(amount=int(coin["balance"]), object_id=coin.get("coinObjectId", ""))
                    )
            except (KeyError, TypeError, ValueError) as e:
                raise LedgerQueryError(address, f"Malformed coin data: {e!s}") from e

            cursor = page.get("nextCursor")
            if not page.get("hasNextPage") or not cursor:
                break
        else:
            logger.warning(
                f"Stopped paging holdings for {address} after {SUI_MAX_PAGES} pages; "
                f"balance may be understated"
            )

        logger.debug(f"Address {address}: {len(holdings)} coin objects")
        return holdings
