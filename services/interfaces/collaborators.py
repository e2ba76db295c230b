"""
Collaborator protocols for the reconciliation engine.

The engine depends on these abstractions rather than on the Sui, Discord and
Django implementations, so each piece can be exercised with in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from services.ledger.client import Holding
    from services.reconciliation.records import RunRecord, UserAccount


class LedgerClientProtocol(Protocol):
    """Read-only access to asset holdings."""

    async def get_holdings(self, address: str, asset_id: str) -> list[Holding]:
        """
        Get holdings of an asset for one address.

        Returns:
            Holdings with integer amounts in the asset's smallest unit

        Raises:
            LedgerQueryError: If the query fails
        """
        ...


class RolePlatformProtocol(Protocol):
    """Role assignment on the external community platform."""

    async def list_member_roles(self, user_id: str) -> set[str]:
        """
        Raises:
            ExternalMemberNotFoundError: If the user is not a member
            RateLimitedError: If the platform rate limits the call
        """
        ...

    async def remove_roles(self, user_id: str, role_refs: Iterable[str]) -> None: ...

    async def add_roles(self, user_id: str, role_refs: Iterable[str]) -> None: ...


class UserStoreProtocol(Protocol):
    """Persistent record store for user accounts."""

    async def list_candidates(self) -> list[UserAccount]:
        """
        Users with at least one linked address.

        Raises:
            CandidateFetchError: If the candidate list cannot be loaded
        """
        ...

    async def get_candidate(self, user_id: int) -> UserAccount | None: ...

    async def update_balance(
        self, user_id: int, balance: Decimal, checked_at: datetime
    ) -> None: ...

    async def update_roles(
        self, user_id: int, roles: set[str], tier_name: str | None = None
    ) -> None: ...

    async def record_run(self, run: RunRecord) -> None: ...
