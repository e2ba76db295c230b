"""
Scheduler - entry point shared by Celery beat, manual tasks and commands.

The Scheduler owns the run guard for this process. Every trigger goes through
``BatchRunner`` with the same guard, so a scheduled pass and a manual pass
can never overlap; the later one returns a skipped record.

The calendar trigger itself is a Celery beat entry built from
``ReconciliationConfig.schedule_spec`` (see ``beat_entry``).
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from functools import lru_cache

from django.core.cache import cache

from services.balances.aggregator import BalanceAggregator
from services.core.cache import CacheManager
from services.core.logging import get_logger
from services.ledger.client import SuiLedgerClient
from services.ledger.client import get_config as get_ledger_config
from services.reconciliation.config import ReconciliationConfig, beat_entry, get_config
from services.reconciliation.guard import CacheRunGuard, RunGuard
from services.reconciliation.records import RunRecord, RunStatus, RunTrigger
from services.reconciliation.runner import BatchRunner
from services.reconciliation.store import DjangoUserStore
from services.roles.client import DiscordRoleClient
from services.roles.synchronizer import RoleSynchronizer
from services.tiers.table import get_tier_table

logger = get_logger(__name__)

GUARD_NAME = "reconciliation"

RunnerFactory = Callable[
    [ReconciliationConfig, RunGuard], AbstractAsyncContextManager[BatchRunner]
]


@asynccontextmanager
async def build_runner(config: ReconciliationConfig, guard: RunGuard):
    """
    Wire the production collaborators into a ``BatchRunner``.

    HTTP clients are opened per pass so they belong to the event loop the
    pass runs on, and are closed when the pass ends.
    """
    tiers = get_tier_table()
    ledger_config = get_ledger_config()
    store = DjangoUserStore()

    async with SuiLedgerClient(ledger_config) as ledger, DiscordRoleClient() as platform:
        aggregator = BalanceAggregator(
            ledger,
            ledger_config.asset_type,
            decimals=ledger_config.asset_decimals,
            concurrency_limit=config.address_concurrency_limit,
        )
        synchronizer = RoleSynchronizer(
            platform,
            store,
            tiers,
            rate_limit_retries=config.rate_limit_retries,
            max_retry_after=config.max_retry_after,
        )
        yield BatchRunner(
            store,
            aggregator,
            synchronizer,
            guard,
            inter_user_delay=config.inter_user_delay,
        )


def make_guard(config: ReconciliationConfig) -> RunGuard:
    if config.run_guard == "cache":
        return CacheRunGuard(GUARD_NAME, ttl=config.run_guard_ttl)
    return RunGuard(GUARD_NAME)


class Scheduler:
    """
    Triggers reconciliation passes.

    Usage:
        scheduler = get_scheduler()
        record = await scheduler.trigger_manual()
        if record.status == RunStatus.SKIPPED:
            ...
    """

    def __init__(
        self,
        config: ReconciliationConfig,
        guard: RunGuard | None = None,
        runner_factory: RunnerFactory = build_runner,
    ):
        self.config = config
        self.guard = guard or make_guard(config)
        self.runner_factory = runner_factory

    async def run_scheduled(self) -> RunRecord:
        """Calendar trigger."""
        return await self._run(RunTrigger.SCHEDULED)

    async def trigger_manual(self, user_id: int | None = None) -> RunRecord:
        """
        Manual trigger for every candidate, or for one user when ``user_id``
        is given. Returns a skipped record if a pass is already running.
        """
        return await self._run(RunTrigger.MANUAL, user_id)

    async def _run(self, trigger: RunTrigger, user_id: int | None = None) -> RunRecord:
        async with self.runner_factory(self.config, self.guard) as runner:
            if user_id is None:
                record = await runner.run_once(trigger)
            else:
                record = await runner.run_for_user(user_id, trigger)

        if record.status != RunStatus.SKIPPED:
            self._remember(record)
        return record

    def is_running(self) -> bool:
        """True while a pass holds the guard."""
        return self.guard.is_held

    def beat_entry(self) -> dict:
        """Celery beat schedule entry for the calendar trigger (UTC)."""
        return beat_entry(self.config)

    def _remember(self, record: RunRecord) -> None:
        summary = record.to_dict()
        summary.pop("outcomes", None)
        try:
            cache.set(CacheManager.last_run_summary(self.guard.name), summary, timeout=None)
        except Exception as e:
            logger.warning(f"Could not cache last run summary: {e}")

    def last_run(self) -> dict | None:
        """Summary of the last pass that was not skipped, if still cached."""
        return cache.get(CacheManager.last_run_summary(self.guard.name))


@lru_cache(maxsize=1)
def get_scheduler() -> Scheduler:
    """Process-wide Scheduler built from settings."""
    return Scheduler(get_config())
