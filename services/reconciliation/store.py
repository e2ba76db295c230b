"""
Django ORM implementation of the user store.

Reads produce immutable ``UserAccount`` snapshots so the engine never holds
live model instances across awaits. Writes are narrow ``update()`` calls that
only touch the columns a pass owns.
"""

from datetime import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models import Prefetch

from asgiref.sync import sync_to_async

from accounts.models import LinkedAddress
from membership.models import ReconciliationRun
from services.core.exceptions import CandidateFetchError, PersistenceError
from services.core.logging import get_logger
from services.reconciliation.records import RunRecord, UserAccount

User = get_user_model()
logger = get_logger(__name__)


def to_account(user) -> UserAccount:
    """Snapshot a prefetched ``User`` row."""
    return UserAccount(
        id=user.pk,
        platform_user_id=user.discord_id,
        linked_addresses=frozenset(link.address for link in user.linked_addresses.all()),
        current_balance=Decimal(user.token_balance or 0),
        current_roles=frozenset(str(role) for role in user.roles or []),
        last_checked_at=user.last_balance_check,
        display_name=user.discord_username or user.username,
    )


class DjangoUserStore:
    """
    User store backed by ``accounts.User`` and ``accounts.LinkedAddress``.

    Candidates are active users with at least one linked address.
    """

    def _candidates(self):
        return (
            User.objects.filter(is_active=True, linked_addresses__isnull=False)
            .distinct()
            .prefetch_related(
                Prefetch("linked_addresses", queryset=LinkedAddress.objects.order_by("address"))
            )
            .order_by("id")
        )

    async def list_candidates(self) -> list[UserAccount]:
        try:
            users = await sync_to_async(list)(self._candidates())
        except DatabaseError as e:
            raise CandidateFetchError(str(e)) from e
        return [to_account(user) for user in users]

    async def get_candidate(self, user_id: int) -> UserAccount | None:
        try:
            users = await sync_to_async(list)(self._candidates().filter(id=user_id))
        except DatabaseError as e:
            raise CandidateFetchError(str(e)) from e
        return to_account(users[0]) if users else None

    async def update_balance(self, user_id: int, balance: Decimal, checked_at: datetime) -> None:
        await self._update(
            "update_balance", user_id, token_balance=balance, last_balance_check=checked_at
        )

    async def update_roles(
        self, user_id: int, roles: set[str], tier_name: str | None = None
    ) -> None:
        await self._update("update_roles", user_id, roles=sorted(roles), tier_name=tier_name or "")

    async def _update(self, operation: str, user_id: int, **fields) -> None:
        try:
            updated = await User.objects.filter(id=user_id).aupdate(**fields)
        except DatabaseError as e:
            raise PersistenceError(operation, user_id=user_id, reason=str(e)) from e
        if not updated:
            raise PersistenceError(operation, user_id=user_id, reason="user no longer exists")

    async def record_run(self, run: RunRecord) -> None:
        """Append a finished pass to the run history."""
        try:
            await ReconciliationRun.objects.acreate(
                started_at=run.started_at,
                finished_at=run.finished_at,
                status=run.status.value,
                trigger=run.trigger.value,
                users_processed=run.users_processed,
                users_updated=run.users_updated,
                users_errored=run.users_errored,
                users_skipped=run.users_skipped,
                error=run.error or "",
                outcomes=[outcome.to_dict() for outcome in run.outcomes],
            )
        except DatabaseError as e:
            raise PersistenceError("record_run", reason=str(e)) from e
        logger.debug(f"Recorded {run.trigger.value} run started at {run.started_at}")
