"""
Batch runner - one full reconciliation pass over all candidate users.

The pass works in this order:
1. Acquire the run guard (or return a skipped record immediately)
2. Load candidate users from the store
3. For each user, sequentially:
   aggregate balance -> resolve tier -> read member roles -> sync roles
4. Release the guard and return the finalized RunRecord

Per-user work never raises out of the loop: every failure becomes a
``UserOutcome``. Only an unreachable guard backend or failing to load the
candidate list fails the pass.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal

from django.utils import timezone

from services.balances.aggregator import BalanceAggregator
from services.core.constants import DEFAULT_INTER_USER_DELAY
from services.core.exceptions import (
    CandidateFetchError,
    ExternalMemberNotFoundError,
    RolePlatformError,
    RunAlreadyInProgressError,
    RunGuardUnavailableError,
)
from services.core.logging import get_logger
from services.interfaces.collaborators import UserStoreProtocol
from services.reconciliation.guard import RunGuard
from services.reconciliation.records import (
    OutcomeStatus,
    RunRecord,
    RunStatus,
    RunTrigger,
    UserAccount,
    UserOutcome,
)
from services.roles.synchronizer import RoleSynchronizer
from services.tiers.resolver import resolve

logger = get_logger(__name__)

# Balance changes smaller than this are not worth an info log line
BALANCE_CHANGE_LOG_THRESHOLD = Decimal("0.01")


class BatchRunner:
    """
    Drives reconciliation passes.

    Usage:
        runner = BatchRunner(store, aggregator, synchronizer, guard)
        record = await runner.run_once(RunTrigger.SCHEDULED)
    """

    def __init__(
        self,
        store: UserStoreProtocol,
        aggregator: BalanceAggregator,
        synchronizer: RoleSynchronizer,
        guard: RunGuard,
        inter_user_delay: float = DEFAULT_INTER_USER_DELAY,
        delay: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.store = store
        self.aggregator = aggregator
        self.synchronizer = synchronizer
        self.guard = guard
        self.inter_user_delay = inter_user_delay
        self.delay = delay
        self.clock = clock

    @property
    def tiers(self):
        return self.synchronizer.tiers

    @property
    def platform(self):
        return self.synchronizer.platform

    async def run_once(self, trigger: RunTrigger = RunTrigger.SCHEDULED) -> RunRecord:
        """
        Reconcile every candidate user.

        Returns:
            RunRecord with status completed, failed (candidate fetch failed or
            guard backend unreachable) or skipped (another pass holds the guard)
        """
        try:
            with self.guard.hold():
                return await self._run(trigger, self.store.list_candidates)
        except RunAlreadyInProgressError as e:
            logger.warning(f"Balance check already running, skipping {trigger.value} trigger")
            return RunRecord.skipped(trigger, self.clock(), str(e))
        except RunGuardUnavailableError as e:
            return await self._guard_failed(trigger, e)

    async def run_for_user(
        self, user_id: int, trigger: RunTrigger = RunTrigger.MANUAL
    ) -> RunRecord:
        """
        Reconcile a single user through the same pipeline and guard.

        An unknown user (or one without linked addresses) fails the pass.
        """

        async def single_candidate() -> list[UserAccount]:
            user = await self.store.get_candidate(user_id)
            if user is None:
                raise CandidateFetchError(f"user {user_id} not found or has no linked addresses")
            return [user]

        try:
            with self.guard.hold():
                return await self._run(trigger, single_candidate)
        except RunAlreadyInProgressError as e:
            logger.warning(f"Balance check already running, skipping update for user {user_id}")
            return RunRecord.skipped(trigger, self.clock(), str(e))
        except RunGuardUnavailableError as e:
            return await self._guard_failed(trigger, e)

    async def _guard_failed(self, trigger: RunTrigger, error: RunGuardUnavailableError) -> RunRecord:
        logger.error(f"Cannot start {trigger.value} balance check: {error}")
        now = self.clock()
        return await self._finish(
            RunRecord.start(trigger, now).finalize(RunStatus.FAILED, now, error=str(error))
        )

    async def _run(self, trigger: RunTrigger, fetch_candidates) -> RunRecord:
        record = RunRecord.start(trigger, self.clock())
        logger.info(f"Starting {trigger.value} balance check...")

        try:
            users = await fetch_candidates()
        except Exception as e:
            logger.error(f"Error fetching users for balance check: {e}", exc_info=True)
            return await self._finish(
                record.finalize(RunStatus.FAILED, self.clock(), error=str(e))
            )

        logger.info(f"Checking balances for {len(users)} users")

        outcomes = []
        for index, user in enumerate(users):
            outcomes.append(await self.reconcile_user(user))
            # Pace calls against the role platform
            if index < len(users) - 1 and self.inter_user_delay > 0:
                await self.delay(self.inter_user_delay)

        return await self._finish(record.finalize(RunStatus.COMPLETED, self.clock(), outcomes))

    async def _finish(self, record: RunRecord) -> RunRecord:
        log_level = "info" if record.status == RunStatus.COMPLETED else "error"
        getattr(logger, log_level)(
            f"Balance check {record.status.value}: {record.users_updated} users updated, "
            f"{record.users_errored} errors, {record.users_skipped} skipped "
            f"in {record.duration_seconds}s"
        )
        try:
            await self.store.record_run(record)
        except Exception as e:
            logger.warning(f"Could not save run history: {e}")
        return record

    async def reconcile_user(self, user: UserAccount) -> UserOutcome:
        """Run the per-user pipeline; never raises."""
        checked_at = self.clock()

        def outcome(status, balance=None, tier=None, message=None) -> UserOutcome:
            return UserOutcome(
                user_id=user.id,
                platform_user_id=user.platform_user_id,
                status=status,
                balance=balance,
                tier_name=tier.name if tier else None,
                message=message,
            )

        try:
            logger.info(
                f"Checking balance for {user} ({len(user.linked_addresses)} addresses)"
            )
            balance = await self.aggregator.total_balance(user.linked_addresses)
            tier = resolve(balance, self.tiers)

            try:
                current_roles = await self.synchronizer.call_with_retry(
                    f"list_member_roles({user.platform_user_id})",
                    self.platform.list_member_roles,
                    user.platform_user_id,
                )
            except ExternalMemberNotFoundError as e:
                logger.warning(f"Member not found in guild: {user.platform_user_id}")
                return outcome(OutcomeStatus.SKIPPED, balance, tier, str(e))
            except RolePlatformError as e:
                logger.error(f"Could not read roles for {user}: {e}")
                return outcome(OutcomeStatus.ERROR, balance, tier, str(e))

            sync = await self.synchronizer.reconcile(
                user, tier, current_roles, balance=balance, checked_at=checked_at
            )

            if abs(balance - user.current_balance) > BALANCE_CHANGE_LOG_THRESHOLD:
                logger.info(f"Balance updated for {user}: {user.current_balance} -> {balance}")
                if tier:
                    logger.info(f"Role assigned: {tier.label}")
                else:
                    logger.info("No role assigned (insufficient balance)")

            return outcome(sync.status, balance, tier, sync.error or sync.warning)

        except Exception as e:
            logger.error(f"Error checking balance for {user}: {e}", exc_info=True)
            return outcome(OutcomeStatus.ERROR, message=str(e))
