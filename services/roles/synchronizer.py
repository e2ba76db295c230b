"""
Role synchronization for one user.

Every pass strips all tier roles the member holds and then adds the role of
the resolved tier, even when the tier did not change. The redundant calls are
accepted: a member left with stray tier roles by an earlier partial failure
always converges to exactly one correct tier role.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal

from services.core.constants import DEFAULT_MAX_RETRY_AFTER, DEFAULT_RATE_LIMIT_RETRIES
from services.core.exceptions import (
    ExternalMemberNotFoundError,
    PersistenceError,
    RateLimitedError,
    RolePlatformError,
)
from services.core.logging import get_logger
from services.interfaces.collaborators import RolePlatformProtocol, UserStoreProtocol
from services.reconciliation.records import OutcomeStatus, RoleSyncOutcome, UserAccount
from services.tiers.table import TierDefinition, TierTable

logger = get_logger(__name__)

DelayFn = Callable[[float], Awaitable[None]]


class RoleSynchronizer:
    """
    Applies the desired tier role to one member and persists the result.

    Args:
        platform: Role platform client
        store: User store used to persist balance and roles
        tiers: Tier table; every role in it is a managed tier role
        rate_limit_retries: Retries per call after a rate limit
        max_retry_after: Upper bound on a single rate-limit wait (seconds)
        delay: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        platform: RolePlatformProtocol,
        store: UserStoreProtocol,
        tiers: TierTable,
        rate_limit_retries: int = DEFAULT_RATE_LIMIT_RETRIES,
        max_retry_after: float = DEFAULT_MAX_RETRY_AFTER,
        delay: DelayFn = asyncio.sleep,
    ):
        self.platform = platform
        self.store = store
        self.tiers = tiers
        self.rate_limit_retries = rate_limit_retries
        self.max_retry_after = max_retry_after
        self.delay = delay

    async def call_with_retry(self, operation: str, func, *args):
        """
        Await ``func(*args)``, honoring rate-limit hints.

        Retries at most ``rate_limit_retries`` times, waiting the hinted
        ``retry_after`` (capped at ``max_retry_after``) before each retry.

        Raises:
            RateLimitedError: If still rate limited after the last retry
        """
        for attempt in range(self.rate_limit_retries + 1):
            try:
                return await func(*args)
            except RateLimitedError as e:
                if attempt >= self.rate_limit_retries:
                    logger.warning(
                        f"{operation}: still rate limited after {attempt} retries, giving up"
                    )
                    raise
                wait = min(max(e.retry_after, 0.0), self.max_retry_after)
                logger.info(
                    f"{operation}: rate limited, retrying in {wait:.2f}s "
                    f"(attempt {attempt + 1}/{self.rate_limit_retries})"
                )
                await self.delay(wait)

    def plan(
        self, desired_tier: TierDefinition | None, current_roles: set[str] | frozenset[str]
    ) -> tuple[frozenset[str], frozenset[str]]:
        """Return ``(remove_set, add_set)`` for the strip-then-add update."""
        remove_set = frozenset(current_roles) & self.tiers.role_refs
        add_set = frozenset({desired_tier.role_ref}) if desired_tier else frozenset()
        return remove_set, add_set

    async def reconcile(
        self,
        user: UserAccount,
        desired_tier: TierDefinition | None,
        current_roles: set[str] | frozenset[str],
        balance: Decimal | None = None,
        checked_at: datetime | None = None,
    ) -> RoleSyncOutcome:
        """
        Strip every held tier role, add the desired one, then persist.

        Never raises for platform or store failures; they are returned as
        the outcome's status.

        Args:
            user: User being reconciled
            desired_tier: Resolved tier, or None for no tier
            current_roles: Roles the member holds right now on the platform
            balance: Aggregated balance to persist alongside the roles
            checked_at: Timestamp of this check
        """
        member_id = user.platform_user_id
        remove_set, add_set = self.plan(desired_tier, current_roles)

        try:
            if remove_set:
                await self.call_with_retry(
                    f"remove_roles({member_id})", self.platform.remove_roles, member_id, remove_set
                )
                logger.debug(f"Removed old roles from {user}: {sorted(remove_set)}")

            if add_set:
                await self.call_with_retry(
                    f"add_roles({member_id})", self.platform.add_roles, member_id, add_set
                )
                logger.info(f"Added role {desired_tier.name} to {user}")
        except ExternalMemberNotFoundError as e:
            logger.warning(f"Member not found in guild: {member_id}")
            return RoleSyncOutcome(status=OutcomeStatus.SKIPPED, error=str(e))
        except RolePlatformError as e:
            logger.error(f"Failed to update roles for {user}: {e}")
            return RoleSyncOutcome(status=OutcomeStatus.ERROR, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected error updating roles for {user}: {e}", exc_info=True)
            return RoleSyncOutcome(status=OutcomeStatus.ERROR, error=str(e))

        warning = await self._persist(user, add_set, desired_tier, balance, checked_at)
        return RoleSyncOutcome(
            status=OutcomeStatus.WARNING if warning else OutcomeStatus.SUCCESS,
            removed=remove_set,
            added=add_set,
            roles=add_set,
            warning=warning,
        )

    async def _persist(
        self,
        user: UserAccount,
        roles: frozenset[str],
        desired_tier: TierDefinition | None,
        balance: Decimal | None,
        checked_at: datetime | None,
    ) -> str | None:
        """
        Write balance and roles independently; return the joined warning
        messages of the writes that failed instead of raising.
        """
        writes = [
            (
                "roles",
                self.store.update_roles,
                (user.id, set(roles), desired_tier.name if desired_tier else None),
            )
        ]
        if balance is not None and checked_at is not None:
            writes.insert(0, ("balance", self.store.update_balance, (user.id, balance, checked_at)))

        warnings = []
        for label, write, args in writes:
            try:
                await write(*args)
            except PersistenceError as e:
                logger.warning(f"Roles synced for {user} but {label} not persisted: {e}")
                warnings.append(str(e))
            except Exception as e:
                logger.warning(
                    f"Roles synced for {user} but {label} not persisted: {e}", exc_info=True
                )
                warnings.append(str(e))
        return "; ".join(warnings) or None
